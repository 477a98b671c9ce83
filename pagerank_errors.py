class PagerankError(Exception):
    pass


class OutOfRangeError(PagerankError, IndexError):
    def __init__(self, node: int, size: int):
        self.node = node
        self.size = size
        super().__init__(f"node {node} is out of range for a graph of {size} nodes")


class InvalidParameterError(PagerankError, ValueError):
    pass
