"""Record Vault Meta information.
   Record Vault keeps one encrypted JSON document per key,
   sealed with an AEAD cipher before it reaches the database.
"""
__title__ = 'record_vault'
__description__ = (
   'Record Vault keeps one encrypted JSON document per key '
   'in a SQLite database.'
)
__version__ = '0.1.0'
__license__ = 'Apache-2.0'
