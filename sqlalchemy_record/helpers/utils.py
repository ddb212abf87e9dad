from itertools import islice


def chunk_generator(items, size):
    """
    Lazily split ``items`` into lists of at most ``size`` elements.
    """
    if size < 1:
        raise ValueError(f"Chunk size must be positive, got {size}")

    iterator = iter(items)
    chunk = list(islice(iterator, size))
    while chunk:
        yield chunk
        chunk = list(islice(iterator, size))
