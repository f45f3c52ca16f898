"""
Exceptions for SecureStore
This is placed such that there is a general error catcher
"""


class SecureStoreError(Exception):
    # general container for errors
    pass


class StoreInitializationError(SecureStoreError):
    # raised when the master key or the encrypted backend cannot be set up; fatal
    pass


class StorageError(SecureStoreError):
    # raised if the backing database fails in some way
    pass


class KeyStoreError(SecureStoreError):
    # raised when the OS keystore is missing or refuses to hold the master key
    pass
