"""Zip archives of backup store directories."""

from .packager import pack_directory, unpack_archive

__all__ = ["pack_directory", "unpack_archive"]
