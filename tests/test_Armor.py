import base64
import io
from struct import pack
import pytest
import OpenPGPTools
import OpenPGPTools.Armor

class TestCRC24:
    def test_initial_value(self):
        assert OpenPGPTools.Armor.crc24(b'') == 0xB704CE

    def test_check_value(self):
        assert OpenPGPTools.Armor.crc24(b'123456789') == 0x21CF02

class TestASCIIArmor:
    def test_round_trip(self):
        data = bytes(range(256)) * 3
        armored = OpenPGPTools.Armor.enarmor(data, headers = {'Version': 'OpenPGPTools', 'Comment': 'test'})
        assert armored.startswith('-----BEGIN PGP MESSAGE-----\nComment: test\nVersion: OpenPGPTools\n\n')
        ((headers, unarmored),) = OpenPGPTools.Armor.unarmor(armored)
        assert headers == {'Version': 'OpenPGPTools', 'Comment': 'test'}
        assert unarmored == data

    def test_line_width(self):
        armored = OpenPGPTools.Armor.enarmor(b'x' * 200, marker = 'signature', line_width = 76)
        lines = armored.split('\n')
        assert lines[0] == '-----BEGIN PGP SIGNATURE-----'
        assert max(len(line) for line in lines if not line.startswith('-----')) == 76

    def test_crlf_and_bytes(self):
        data = b'\xCD\x02ab'
        armored = OpenPGPTools.Armor.enarmor(data).replace('\n', '\r\n').encode('ascii')
        assert OpenPGPTools.Armor.unarmor(armored) == [({}, data)]

    def test_several_blocks(self):
        armored = OpenPGPTools.Armor.enarmor(b'one') + 'noise\n' + OpenPGPTools.Armor.enarmor(b'two', 'PUBLIC KEY BLOCK')
        assert [data for _, data in OpenPGPTools.Armor.unarmor(armored)] == [b'one', b'two']

    def test_checksum_mismatch(self):
        data = b'\xCD\x02ab'
        good = '=' + base64.b64encode(pack('!L', OpenPGPTools.Armor.crc24(data))[1:]).decode('ascii')
        bad = '=' + base64.b64encode(pack('!L', OpenPGPTools.Armor.crc24(data) ^ 1)[1:]).decode('ascii')
        armored = OpenPGPTools.Armor.enarmor(data)
        assert good in armored
        with pytest.raises(OpenPGPTools.ChecksumMismatchError):
            OpenPGPTools.Armor.unarmor(armored.replace(good, bad))

    def test_missing_checksum(self):
        armored = "-----BEGIN PGP MESSAGE-----\n\nzQJhYg==\n-----END PGP MESSAGE-----\n"
        with pytest.raises(OpenPGPTools.ArmorError):
            OpenPGPTools.Armor.unarmor(armored)

    def test_bad_base64(self):
        armored = "-----BEGIN PGP MESSAGE-----\n\nzQ*hYg==\n=ye8G\n-----END PGP MESSAGE-----\n"
        with pytest.raises(OpenPGPTools.ArmorError):
            OpenPGPTools.Armor.unarmor(armored)

    def test_no_armor(self):
        with pytest.raises(OpenPGPTools.ArmorError):
            OpenPGPTools.Armor.unarmor('just some text\n')

    def test_unarmor_lines_feeds_parser(self):
        data = b'\xCD\x02ab' + b'\x87' + b'rest'
        lines = io.StringIO(OpenPGPTools.Armor.enarmor(data).replace('\n', '\r\n'))
        groups = OpenPGPTools.Armor.unarmor_lines(lines)
        assert groups == [data]
        p = OpenPGPTools.parse_packet(groups)
        assert p.type == 'user_id'
        assert p.body == b'ab'
        assert OpenPGPTools.parse_packet(p.residual).body == b'rest'

    def test_padded_marker_lines(self):
        data = b'\xCD\x02ab'
        armored = OpenPGPTools.Armor.enarmor(data, headers = {'Version': 'OpenPGPTools'})
        padded = armored.replace('-----BEGIN PGP MESSAGE-----', '-----BEGIN PGP MESSAGE----- \t')
        padded = padded.replace('-----END PGP MESSAGE-----', '  -----END PGP MESSAGE-----')
        assert OpenPGPTools.Armor.unarmor(padded) == [({'Version': 'OpenPGPTools'}, data)]

    def test_indented_lines(self):
        data = bytes(range(100))
        armored = OpenPGPTools.Armor.enarmor(data)
        indented = '\n'.join('  ' + line for line in armored.split('\n'))
        assert OpenPGPTools.Armor.unarmor(indented) == [({}, data)]
        lines = io.StringIO(indented.replace('\n', '\r\n'))
        assert OpenPGPTools.Armor.unarmor_lines(lines) == [data]

    def test_non_ascii_bytes(self):
        with pytest.raises(OpenPGPTools.ArmorError):
            OpenPGPTools.Armor.unarmor(b'\xff\xfe garbage')
