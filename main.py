"""Main entry point for the PennFAT viewer."""

import sys

from errors import ImageIOError, MalformedMetadata
from image_reader import ImageReader
from navigation import NavigationState
from refresh import RefreshEngine

VERSION = "0.2.0"


def open_image(path: str):
    """Open an image and decode its first snapshot.

    Returns (reader, navigation, engine); raises ImageIOError or
    MalformedMetadata.
    """
    reader = ImageReader(path).open()
    navigation = NavigationState()
    engine = RefreshEngine(reader, navigation)
    try:
        engine.load()
    except (ImageIOError, MalformedMetadata):
        reader.close()
        raise
    return reader, navigation, engine


def main(argv=None) -> int:
    """Main entry point."""
    argv = sys.argv if argv is None else argv
    if len(argv) != 2:
        prog = argv[0] if argv else "pfview"
        print(f"pfview {VERSION} - live PennFAT viewer", file=sys.stderr)
        print(f"Usage: {prog} <filename>", file=sys.stderr)
        return 1

    path = argv[1]
    try:
        reader, navigation, engine = open_image(path)
    except ImageIOError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except MalformedMetadata as e:
        print(f"Error: {path}: not a PennFAT image: {e}", file=sys.stderr)
        return 1

    from gui import TKINTER_AVAILABLE
    if not TKINTER_AVAILABLE:
        reader.close()
        print("Error: tkinter is not available", file=sys.stderr)
        return 1

    from gui import PennFatViewer, TclError
    try:
        viewer = PennFatViewer(engine, navigation)
    except TclError as e:
        reader.close()
        print(f"Error: cannot open a window: {e}", file=sys.stderr)
        return 1

    try:
        viewer.run()
    finally:
        reader.close()
    return 0


def main_cli():
    sys.exit(main())


if __name__ == "__main__":
    main_cli()
