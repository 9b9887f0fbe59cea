# Pure Python decoder for the OpenPGP packet framing format <http://tools.ietf.org/html/rfc4880#section-4>

from struct import unpack
import logging

log = logging.getLogger(__name__)
log.addHandler(logging.NullHandler())

# Ceilings on partial body length chains, overridable per call
MAX_PARTIAL_SEGMENTS = 1 << 20
MAX_BODY_LENGTH = None

class OpenPGPException(Exception):
    pass # Everything inherited

class PacketError(OpenPGPException):
    """ Base class for errors in the packet framing layer """
    pass

class EmptyInputError(PacketError):
    pass

class MalformedTagError(PacketError):
    pass

class UnknownPacketTypeError(PacketError):
    pass

class UnsupportedLengthEncoding(PacketError):
    pass

class TruncatedInputError(PacketError):
    pass

class LimitExceededError(PacketError):
    pass

class UnsupportedPacketBodyError(PacketError):
    pass

class ArmorError(OpenPGPException):
    pass

class ChecksumMismatchError(ArmorError):
    pass

class CompressionError(OpenPGPException):
    pass

class UnsupportedCompressionError(CompressionError):
    pass

class UnknownCompressionAlgorithmError(CompressionError):
    pass

def _is_bytes(obj):
    return isinstance(obj, (bytes, bytearray, memoryview))

class ByteStream(object):
    """ A logically contiguous view over an arbitrarily chunked sequence of
        byte groups. Index access returns ints, slicing returns bytes.
        drop_last returns a narrower ByteStream sharing the same buffer.
    """

    def __init__(self, input_data):
        if isinstance(input_data, ByteStream):
            self._data = input_data._data
            return

        if _is_bytes(input_data):
            groups = [input_data]
        else:
            groups = input_data

        data = bytearray()
        count = 0
        for group in groups:
            if not _is_bytes(group):
                raise TypeError("Byte groups must be bytes-like, not %s" % type(group).__name__)
            data += group
            count += 1

        if count == 0 or len(data) == 0:
            raise EmptyInputError("No data to parse")
        self._data = memoryview(bytes(data))

    @classmethod
    def _view(cls, data):
        stream = cls.__new__(cls)
        stream._data = data
        return stream

    def __len__(self):
        return len(self._data)

    def __getitem__(self, item):
        if isinstance(item, slice):
            return bytes(self._data[item])
        return self._data[item]

    def to_bytes(self):
        return bytes(self._data)

    def take(self, n):
        return bytes(self._data[:n])

    def drop(self, n):
        return bytes(self._data[n:])

    def take_last(self, n):
        if n <= 0:
            return b''
        return bytes(self._data[-n:])

    def drop_last(self, n):
        if n <= 0:
            return self
        return ByteStream._view(self._data[:max(len(self._data) - n, 0)])

    def __repr__(self):
        return "%s: %d bytes" % (type(self), len(self._data))

    def __eq__(self, other):
        if type(other) is type(self):
            return self._data == other._data
        return False

    def __ne__(self, other):
        return not self.__eq__(other)

class TagParser(object):
    """ Packet Tag octet
        http://tools.ietf.org/html/rfc4880#section-4.2
    """
    ONE_OCTET = 'one_octet'
    TWO_OCTET = 'two_octet'
    FOUR_OCTET = 'four_octet'
    INDETERMINATE = 'indeterminate'

    # Old format length-type, bits 1-0
    length_types = {0: ONE_OCTET, 1: TWO_OCTET, 2: FOUR_OCTET, 3: INDETERMINATE}

    @classmethod
    def parse(cls, octet):
        """ Returns (format, packet type, length type). The length type is
            None for new format packets.
        """
        if not octet & 0x80:
            raise MalformedTagError("Bad packet tag: bit 7 must be one")
        if octet & 0x40:
            return (Packet.NEW, cls.packet_type(octet & 0x3F), None)
        return (Packet.OLD, cls.packet_type((octet >> 2) & 0x0F), cls.length_types[octet & 0x03])

    @classmethod
    def tag_id(cls, octet):
        if octet & 0x40:
            return octet & 0x3F
        return (octet >> 2) & 0x0F

    @classmethod
    def packet_type(cls, tag_id):
        """ http://tools.ietf.org/html/rfc4880#section-4.3 """
        try:
            return Packet.tags[tag_id]
        except KeyError:
            raise UnknownPacketTypeError("Unknown packet type: %r" % (tag_id,))

class LengthDecoder(object):
    """ Packet header and body lengths, old and new format.
        http://tools.ietf.org/html/rfc4880#section-4.2.1
        http://tools.ietf.org/html/rfc4880#section-4.2.2
    """

    def __init__(self, max_segments = None, max_body_length = None):
        self.max_segments = max_segments if max_segments is not None else MAX_PARTIAL_SEGMENTS
        self.max_body_length = max_body_length if max_body_length is not None else MAX_BODY_LENGTH

    @classmethod
    def header_length(cls, length_type, first_length_octet = None):
        if length_type == TagParser.ONE_OCTET:
            return 2
        elif length_type == TagParser.TWO_OCTET:
            return 3
        elif length_type == TagParser.FOUR_OCTET:
            return 5
        elif length_type == TagParser.INDETERMINATE:
            return 1

        # New format, decided by the first length octet
        if first_length_octet < 192:
            return 2
        elif first_length_octet < 224:
            return 3
        elif first_length_octet < 255:
            return 2 # Partial body length, tag and first marker
        return 6

    @classmethod
    def length_field_length(cls, length):
        """ Size of a new format, non-partial length field able to hold length """
        if length < 192:
            return 1
        elif length < 8384:
            return 2
        elif length < 4294967296:
            return 5
        raise UnsupportedLengthEncoding("Cannot infer length of packet length field")

    def body_lengths(self, data, format, length_type = None):
        """ Returns the body length descriptor of the packet at the start of data.

            Normally this is a single element list holding the body length.
            With partial body lengths it holds every segment length, the
            terminal segment first and the earliest segment last.
        """
        if format == Packet.OLD:
            return [self._old_format_length(data, length_type)]
        return self._new_format_lengths(data)

    def _old_format_length(self, data, length_type):
        if length_type == TagParser.ONE_OCTET:
            self._ensure(data, 2)
            length = data[1]
        elif length_type == TagParser.TWO_OCTET:
            self._ensure(data, 3)
            length = unpack('!H', data[1:3])[0]
        elif length_type == TagParser.FOUR_OCTET:
            self._ensure(data, 5)
            length = unpack('!L', data[1:5])[0]
        else:
            # Indeterminate: assume the packet runs to the end of the data
            length = len(data) - 1
        self._check_body_length(length)
        return length

    def _new_format_lengths(self, data):
        lengths = []
        total = 0
        pos = 1 # Offset of the current length field
        while True:
            self._ensure(data, pos + 1)
            first = data[pos]
            if first < 224 or first == 255:
                break

            # http://tools.ietf.org/html/rfc4880#section-4.2.2.4
            segment = 1 << (first & 0x1F)
            lengths.insert(0, segment)
            total += segment
            if len(lengths) > self.max_segments:
                raise LimitExceededError("Too many partial body length segments (limit %d)" % self.max_segments)
            self._check_body_length(total)
            pos += 1 + segment

        if first < 192: # One octet length
            length, width = first, 1
        elif first < 224: # Two octet length
            self._ensure(data, pos + 2)
            length, width = ((first - 192) << 8) + data[pos + 1] + 192, 2
        else: # Five octet length
            self._ensure(data, pos + 5)
            length, width = unpack('!L', data[pos + 1:pos + 5])[0], 5

        if lengths:
            if width != self.length_field_length(length):
                raise UnsupportedLengthEncoding("Non-minimal length field ending a partial body length chain")
            log.debug("Partial body length chain of %d segments", len(lengths) + 1)

        lengths.insert(0, length)
        self._check_body_length(total + length)
        return lengths

    def _check_body_length(self, length):
        if self.max_body_length is not None and length > self.max_body_length:
            raise LimitExceededError("Packet body longer than %d bytes" % self.max_body_length)

    @classmethod
    def _ensure(cls, data, n):
        if len(data) < n:
            raise TruncatedInputError("Not enough bytes: need %d, have %d" % (n, len(data)))

class PacketSplitter(object):

    @classmethod
    def total_length(cls, header_length, lengths):
        """ Raw packet length, header included, for a body length descriptor """
        if len(lengths) == 1:
            return header_length + lengths[0]
        # Tag octet, terminal length field, one marker octet per other segment
        return LengthDecoder.length_field_length(lengths[0]) + (len(lengths) - 1) + sum(lengths) + 1

    @classmethod
    def split(cls, stream, total):
        """ Returns (packet bytes, residual bytes) of a ByteStream or bytes """
        if len(stream) < total:
            raise TruncatedInputError("Not enough bytes: packet needs %d, have %d" % (total, len(stream)))
        stream = ByteStream(stream)
        return (stream.take(total), stream.drop(total))

class BodyAssembler(object):

    @classmethod
    def assemble(cls, packet, lengths):
        """ Rebuild the body of one raw packet, dropping the interleaved
            partial body length markers.
        """
        window = ByteStream(packet)
        if len(lengths) == 1:
            return window.take_last(lengths[0])

        parts = []
        marker = LengthDecoder.length_field_length(lengths[0])
        for length in lengths:
            parts.append(window.take_last(length))
            window = window.drop_last(length + marker)
            marker = 1
        # What is left in the window is the tag octet
        parts.reverse()
        return b''.join(parts)

def parse_packet(input_data, max_segments = None, max_body_length = None):
    """ Decode the packet at the head of input_data.
        http://tools.ietf.org/html/rfc4880#section-4.2
    """
    stream = ByteStream(input_data)

    format, packet_type, length_type = TagParser.parse(stream[0])
    if format == Packet.NEW:
        LengthDecoder._ensure(stream, 2)
        header_length = LengthDecoder.header_length(None, stream[1])
    else:
        header_length = LengthDecoder.header_length(length_type)

    lengths = LengthDecoder(max_segments, max_body_length).body_lengths(stream, format, length_type)
    total = PacketSplitter.total_length(header_length, lengths)
    raw, residual = PacketSplitter.split(stream, total)
    body = BodyAssembler.assemble(raw, lengths)

    log.debug("Decoded %s format %s packet, %d body bytes, %d residual bytes",
              format, packet_type, len(body), len(residual))

    return Packet(format, packet_type, stream.take(header_length), body, residual, TagParser.tag_id(stream[0]))

class Packet(object):
    """ One decoded OpenPGP packet.
        http://tools.ietf.org/html/rfc4880#section-4.1
        http://tools.ietf.org/html/rfc4880#section-4.3

        For partial body lengths header + body is not the raw packet: the
        interior length markers are consumed but belong to neither.
    """
    OLD = 'old'
    NEW = 'new'

    def __init__(self, format, type, header, body, residual = b'', tag = None):
        self._format = format
        self._type = type
        self._header = bytes(header)
        self._body = bytes(body)
        self._residual = bytes(residual)
        self._tag = tag

    @classmethod
    def parse(cls, input_data, **limits):
        return parse_packet(input_data, **limits)

    @property
    def format(self):
        return self._format

    @property
    def type(self):
        return self._type

    @property
    def header(self):
        return self._header

    @property
    def body(self):
        return self._body

    @property
    def residual(self):
        return self._residual

    @property
    def tag(self):
        return self._tag

    tags = {} # Actual data at end of file

    def __repr__(self):
        return "%s: %s %s, header %d bytes, body %d bytes, residual %d bytes" % (
            type(self), self._format, self._type, len(self._header), len(self._body), len(self._residual))

    def __eq__(self, other):
        if type(other) is type(self):
            return self.__dict__ == other.__dict__
        return False

    def __ne__(self, other):
        return not self.__eq__(other)

class Message(object):
    """ Represents an OpenPGP message (set of packets)
        http://tools.ietf.org/html/rfc4880#section-4.1
        http://tools.ietf.org/html/rfc4880#section-11
    """
    @classmethod
    def parse(cls, input_data, **limits):
        """ Packets are decoded lazily, each from the residual of the one before """
        m = Message([]) # Nothing parsed yet
        m._input = ByteStream(input_data).to_bytes()
        m._limits = limits
        return m

    def __init__(self, packets = None):
        self._packets = list(packets or [])
        self._input = None
        self._limits = {}

    def force(self):
        packets = []
        for p in self:
            packets.append(p)
        return packets

    def __iter__(self):
        # Already parsed packets
        for p in self._packets:
            yield p

        while self._input:
            packet = parse_packet(self._input, **self._limits)
            self._packets.append(packet)
            self._input = packet.residual
            yield packet
        self._input = None # Parsing done

    def __getitem__(self, item):
        i = 0
        for p in self:
            if i == item:
                return p
            i += 1

    def __len__(self):
        return len(self.force())

    def __repr__(self):
        return "%s: %s" % (type(self), self._packets.__repr__())

    def __eq__(self, other):
        if type(other) is type(self):
            return self.force() == other.force()
        return False

    def __ne__(self, other):
        return not self.__eq__(other)

Packet.tags = {
     0: 'reserved', # Reserved - a packet tag MUST NOT have this value
     1: 'public_key_encrypted_session_key', # Public-Key Encrypted Session Key Packet
     2: 'signature', # Signature Packet
     3: 'symmetric_key_encrypted_session_key', # Symmetric-Key Encrypted Session Key Packet
     4: 'one_pass_signature', # One-Pass Signature Packet
     5: 'secret_key', # Secret-Key Packet
     6: 'public_key', # Public-Key Packet
     7: 'secret_subkey', # Secret-Subkey Packet
     8: 'compressed_data', # Compressed Data Packet
     9: 'symmetrically_encrypted_data', # Symmetrically Encrypted Data Packet
    10: 'marker', # Marker Packet
    11: 'literal_data', # Literal Data Packet
    12: 'trust', # Trust Packet
    13: 'user_id', # User ID Packet
    14: 'public_subkey', # Public-Subkey Packet
    17: 'user_attribute', # User Attribute Packet
    18: 'sym_encrypted_integrity_protected_data', # Sym. Encrypted and Integrity Protected Data Packet
    19: 'modification_detection_code', # Modification Detection Code Packet
    60: 'private', # Private or Experimental Values
    61: 'private', # Private or Experimental Values
    62: 'private', # Private or Experimental Values
    63: 'private', # Private or Experimental Values
}
