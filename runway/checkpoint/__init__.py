from .deserializer import OutputDeserializer
from .serializer import OutputSerializer

__all__ = ["OutputDeserializer", "OutputSerializer"]
