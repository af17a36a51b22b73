from .connectors import (
    Connector,
    FileSystemConnection,
    FileSystemConnector,
    HadoopConnector,
    LocalConnector,
)
from .streams import DirectoryInputStream, FileInputStream, FileOutputStream
from .resource import FileSystemResource, HdfsResource

__all__ = [
    "Connector",
    "FileSystemConnection",
    "FileSystemConnector",
    "HadoopConnector",
    "LocalConnector",
    "DirectoryInputStream",
    "FileInputStream",
    "FileOutputStream",
    "FileSystemResource",
    "HdfsResource",
]
