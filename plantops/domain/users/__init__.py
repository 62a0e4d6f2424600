"""Session identities handed to the gate by the (external) auth layer."""
from .entities import Plant, Role, User
