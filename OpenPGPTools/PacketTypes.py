from OpenPGPTools import Message, EmptyInputError, UnsupportedPacketBodyError
import OpenPGPTools.Compress

def parse_body(body, packet_type):
    """ Parse a packet body according to its packet type """
    try:
        klass = body_types[packet_type]
    except KeyError:
        raise UnsupportedPacketBodyError("Cannot parse %s packet bodies" % (packet_type,))
    return klass.parse(body)

class CompressedData(object):
    """ OpenPGP Compressed Data packet body (tag 8).
        http://tools.ietf.org/html/rfc4880#section-5.6
    """
    algorithms = OpenPGPTools.Compress.algorithms

    def __init__(self, algorithm = 'uncompressed', data = b''):
        self.algorithm = algorithm
        self.data = data

    @classmethod
    def parse(cls, body):
        if not body:
            raise EmptyInputError("Empty compressed data packet")
        algorithm = OpenPGPTools.Compress.algorithm_name(body[0])
        return cls(algorithm, bytes(body[1:]))

    def decompress(self):
        return OpenPGPTools.Compress.decompress(self.data, self.algorithm)

    def message(self, **limits):
        """ The packets held inside """
        return Message.parse(self.decompress(), **limits)

    def __repr__(self):
        return "%s: %s, %d bytes" % (type(self), self.algorithm, len(self.data))

    def __eq__(self, other):
        if type(other) is type(self):
            return self.__dict__ == other.__dict__
        return False

    def __ne__(self, other):
        return not self.__eq__(other)

body_types = {
    'compressed_data': CompressedData,
}
