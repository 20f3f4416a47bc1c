from enum import Enum


class OutputMode(Enum):
    """
    How the final post list is printed
    """
    ID = "id"
    RAW = "raw"
    VERBOSE = "verbose"
    STREAM = "stream"
