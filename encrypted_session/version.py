"""Encrypted Session Meta information.
   Encrypted Session stores session payloads encrypted with a key derived
   from the session ID itself.
"""
__title__ = 'encrypted_session'
__description__ = (
   'Encrypted Session stores session payloads at rest encrypted '
   'with keys derived from the session ID.'
)
__version__ = '0.3.0'
__copyright__ = 'Copyright (c) 2023 Jesus Lara'
__author__ = 'Jesus Lara'
__author_email__ = 'jesuslarag@gmail.com'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/phenobarbital/encrypted-session'
