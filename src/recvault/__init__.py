"""recvault - recording archive relocation and IAM namespace provisioning."""

__version__ = "0.1.0"
