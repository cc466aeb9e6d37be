"""Exceptions raised while reading and decoding PennFAT images."""


class PfViewError(Exception):
    """Base class for all viewer errors."""


class ImageIOError(PfViewError):
    """Opening or reading the image failed."""


class ImageNotFound(ImageIOError):
    pass


class ImagePermissionDenied(ImageIOError):
    pass


class EmptyImage(ImageIOError):
    pass


class OutOfRange(ImageIOError):
    """A block index past the end of the image was requested."""

    def __init__(self, index: int, block_count: int):
        super().__init__(f"Invalid block number {index}, must be >= 0 and < {block_count}")
        self.index = index
        self.block_count = block_count


class ShortRead(ImageIOError):
    """The file ended before the requested range, usually because it shrank."""

    def __init__(self, offset: int, wanted: int, got: int):
        super().__init__(f"Short read at offset {offset}: wanted {wanted} bytes, got {got}")
        self.offset = offset
        self.wanted = wanted
        self.got = got


class TornRead(ImageIOError):
    """The file changed while a refresh cycle was reading it."""


class MalformedMetadata(PfViewError):
    """Block 0 does not describe a PennFAT image this viewer can interpret."""
