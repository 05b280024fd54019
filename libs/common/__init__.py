"""Common utilities shared by the checkpoint libraries."""
