"""Messaging console core: reconciliation, projection, selection and read receipts."""
