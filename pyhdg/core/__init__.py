from .mesh import Mesh
from .topology import Edge, Element, Node
__all__=['Mesh','Edge','Element','Node']
