""" ASCII Armor
    http://tools.ietf.org/html/rfc4880#section-6
    http://tools.ietf.org/html/rfc2045
"""

from struct import pack, unpack
import base64
import binascii
import logging
import re
import textwrap as _textwrap # hide implementation details

from OpenPGPTools import ArmorError, ChecksumMismatchError

log = logging.getLogger(__name__)

_BLOCK = re.compile(r'\n-----BEGIN ([^-]+)-----\n(.*?)\n-----END [^-]+-----(?=\n)', re.S)

def crc24(data):
    """
        http://tools.ietf.org/html/rfc4880#section-6
        http://tools.ietf.org/html/rfc4880#section-6.1
    """
    crc = 0x00b704ce
    for byte in bytearray(data):
        crc ^= byte << 16
        for j in range(0, 8):
            crc <<= 1
            if (crc & 0x01000000):
                crc ^= 0x01864cfb
    return crc & 0x00ffffff

def _b64decode(text):
    try:
        return base64.b64decode(text.encode('ascii'), validate = True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise ArmorError('Bad base64 data: %s' % e) from e

def _parse_headers(lines):
    headers = {}
    for line in lines:
        if ':' not in line:
            raise ArmorError('Bad armor header line: %r' % line)
        key, value = line.split(':', 1)
        headers[key.strip()] = value.strip()
    return headers

def _decode_block(chunk):
    lines = [line.strip() for line in chunk.split('\n')]
    try:
        blank = lines.index('')
    except ValueError:
        raise ArmorError('Missing blank line after armor headers')
    headers = _parse_headers(lines[:blank])

    body = [line for line in lines[blank + 1:] if line]
    if not body or not body[-1].startswith('='):
        raise ArmorError('Missing armor checksum line')
    data = _b64decode(''.join(body[:-1]))
    crc = _b64decode(body[-1][1:])
    if len(crc) != 3:
        raise ArmorError('Bad armor checksum line')

    if crc24(data) != unpack('!L', b'\0' + crc)[0]:
        raise ChecksumMismatchError('CRC24 check failed')
    return headers, data

def unarmor(text):
    """ Convert ASCII-armored data into binary.
        Returns a list of (headers, data), one per armored block.
    """
    if isinstance(text, (bytes, bytearray)):
        try:
            text = text.decode('ascii')
        except UnicodeDecodeError as e:
            raise ArmorError('Armored data must be ASCII: %s' % e) from e
    # Markers are matched on whitespace-trimmed lines
    lines = text.replace("\r\n", "\n").replace("\r", "\n").split("\n")
    text = "\n" + "\n".join(line.strip() for line in lines) + "\n"

    result = []
    for kind, chunk in _BLOCK.findall(text):
        headers, data = _decode_block(chunk)
        log.debug("Unarmored %s block, %d bytes", kind, len(data))
        result.append((headers, data))

    if not result:
        raise ArmorError('No armored data found')
    return result

def unarmor_lines(lines):
    """ Decode the first armored block of an iterable of text lines (an open
        text file, say) into the byte group list that parse_packet accepts.
    """
    _, data = unarmor("\n".join(line.rstrip("\r\n") for line in lines))[0]
    return [data]

def enarmor(data, marker = 'MESSAGE', headers = None, line_width = 64):
    """
    @see http://tools.ietf.org/html/rfc4880#section-6.2 OpenPGP Message Format / Ascii Armor

    @param data: binary data to encode
    @type  data: bytes

    @param marker: armor header line text, e.g. MESSAGE, PUBLIC KEY BLOCK, SIGNATURE
    @type  marker: str

    @param headers: optional header fields (dict keys are sorted)
    @type  headers: dict | [(str, str)] | None

    @param line_width: GnuPG uses 64, RFC4880 limits to 76
    @type  line_width: int

    @rtype: str
    """

    def _iter_enarmor():
        yield '-----BEGIN PGP ' + str(marker).upper() + '-----'
        if isinstance(headers, dict):
            header_items = sorted(headers.items())
        else:
            header_items = list(headers or [])
        for (key, value) in header_items:
            yield "%s: %s" % (key, value)
        yield '' # empty line

        text = base64.b64encode(data).decode('ascii')
        for line in _textwrap.wrap(text, width = line_width):
            yield line
        # unsigned long, big endian; keep only the last 3 bytes
        crc = pack('!L', crc24(data))
        yield '=' + base64.b64encode(crc[1:]).decode('ascii')
        yield '-----END PGP ' + str(marker).upper() + '-----'
        yield '' # final line break

    return "\n".join(_iter_enarmor())
