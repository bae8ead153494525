"""Lark Options Meta information.
   Lark Options answers Lark/Feishu dynamic option-list callbacks
   with values read from a Bitable table.
"""
__title__ = 'lark_options'
__description__ = (
   'Lark Options answers dynamic option-list callbacks '
   'with values read from a Bitable table.'
)
__version__ = '0.3.0'
__copyright__ = 'Copyright (c) 2023 Jesus Lara'
__author__ = 'Jesus Lara'
__author_email__ = 'jesuslarag@gmail.com'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/phenobarbital/lark-options'
