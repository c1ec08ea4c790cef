# ToDo Tokens: encrypted, value-bearing task tokens kept in a BSV wallet
__version__ = "0.1.0"
