import sys
import OpenPGPTools
import OpenPGPTools.Armor
import OpenPGPTools.PacketTypes

def dump(message, depth = 0):
    for p in message:
        print('%s%s %s packet (tag %d), %d body bytes' % ('  ' * depth, p.format, p.type, p.tag, len(p.body)))
        if p.type == 'compressed_data':
            dump(OpenPGPTools.PacketTypes.parse_body(p.body, p.type).message(), depth + 1)

data = open(sys.argv[1], 'rb').read()
if data.lstrip().startswith(b'-----BEGIN'):
    data = OpenPGPTools.Armor.unarmor(data)[0][1]

dump(OpenPGPTools.Message.parse(data))
