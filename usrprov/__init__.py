"""usrprov — htpasswd user provisioning synced into a cluster Secret."""

__version__ = "0.1.0"
