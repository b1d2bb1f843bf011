"""
Wishwall backend package.

A FastAPI service that accepts guest-book style wishes (a message plus an
optional photo), normalizes uploaded photos, stores them in object storage and
serves the public gallery.
"""
