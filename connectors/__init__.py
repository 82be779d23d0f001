"""Connectors to the systems the back-office talks to.

- backend: the factory REST backend holding every record
"""
