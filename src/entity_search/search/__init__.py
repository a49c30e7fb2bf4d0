"""
Search index storage and query compilation package.

- sqlite_storage: SQLite store with an FTS5 shadow table
- sqlite_pragmas: connection and schema pragmas
- query_builder: scoring policy and SQL compilation of query specifications
- normalization: conversion of source values into indexable text
"""
