""" Decompression of Compressed Data packet contents
    http://tools.ietf.org/html/rfc4880#section-5.6
    http://tools.ietf.org/html/rfc4880#section-9.3
"""

import logging
import zlib

from OpenPGPTools import EmptyInputError, CompressionError, UnsupportedCompressionError, UnknownCompressionAlgorithmError

log = logging.getLogger(__name__)

# http://tools.ietf.org/html/rfc4880#section-9.3
algorithms = {0: 'uncompressed', 1: 'zip', 2: 'zlib', 3: 'bzip2'}

def algorithm_name(algorithm):
    if isinstance(algorithm, int):
        if algorithm in algorithms:
            return algorithms[algorithm]
        if 100 <= algorithm <= 110:
            return 'private'
        raise UnknownCompressionAlgorithmError("Unknown compression algorithm: %d" % algorithm)
    return algorithm

def decompress(data, algorithm):
    """ Returns the decompressed bytes, ready to be parsed as packets again """
    if not data:
        raise EmptyInputError("No data to decompress")
    algorithm = algorithm_name(algorithm)
    data = bytes(data)

    try:
        if algorithm == 'uncompressed':
            result = data
        elif algorithm == 'zip':
            # PGP writes a 13 bit window, but inflating with 15 bits is always safe
            result = zlib.decompress(data, -15)
        elif algorithm == 'zlib':
            result = zlib.decompress(data)
        elif algorithm == 'bzip2':
            raise UnsupportedCompressionError("BZip2 compression is not supported")
        else:
            raise UnknownCompressionAlgorithmError("Unknown compression algorithm: %r" % (algorithm,))
    except zlib.error as e:
        raise CompressionError("Bad %s data: %s" % (algorithm, e)) from e

    log.debug("Decompressed %d %s bytes into %d bytes", len(data), algorithm, len(result))
    return result
