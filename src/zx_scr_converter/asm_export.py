"""Export a BSC screen as an sjasmplus border-effect program.

The generated program targets Pentagon 128K timing (224 T-states per line,
320 lines per frame). It copies the screen to #4000, syncs to the frame
interrupt once and then runs a loop of exactly one frame, writing the
border colors with ``OUT (C),r`` at the moment the beam reaches each
8-pixel segment.
"""

# Reference: border color registers
# Color | Instruction
# ------|------------
# 0     | OUT (C),0
# 1     | OUT (C),B
# 2     | OUT (C),D
# 3     | OUT (C),E
# 4     | OUT (C),H
# 5     | OUT (C),L
# 6     | OUT (C),C   (C = #E6, low bits 6)
# 7     | OUT (C),A
#
# OUT (C),r takes 12T, NOP 4T; one 8-pixel segment lasts 4T.

from __future__ import annotations

from typing import List, Sequence

import jinja2

from .border import BORDER_SIZE, BOTTOM_LINES, SIDE_LINES, TOP_LINES, unpack_line
from .errors import ConversionError
from .formats import SCR_SIZE, get_descriptor, ScreenFormat

LINE_TSTATES = 224
VISIBLE_TSTATES = 192
LEFT_BORDER_TSTATES = 32
RIGHT_BORDER_START = 152
RIGHT_BORDER_TSTATES = 160
OUT_TSTATES = 12
NOP_TSTATES = 4

COLOR_OUT = (
    "OUT (C),0",
    "OUT (C),B",
    "OUT (C),D",
    "OUT (C),E",
    "OUT (C),H",
    "OUT (C),L",
    "OUT (C),C",
    "OUT (C),A",
)

asm_template = """; Border screen viewer for Pentagon 128K, sjasmplus syntax
; 224 T-states per line, 320 lines (71680T) per frame.
; Color registers: A=7 B=1 C=#E6 D=2 E=3 H=4 L=5

    DEVICE ZXSPECTRUM128
    ORG #8000

Start:
    DI
    LD SP,#7FFE

    ; 128K paging: bank 0 at #C000, normal screen
    XOR A
    LD BC,#7FFD
    OUT (C),A

    ; screen to video memory
    LD HL,ScrData
    LD DE,#4000
    LD BC,6912
    LDIR

    ; IM 2 vector table at #FE00 pointing to #FDFD
    LD HL,#FE00
    LD DE,#FE01
    LD BC,256
    LD (HL),#FD
    LDIR

    ; handler at #FDFD: EI / RETI
    LD A,#FB
    LD (#FDFD),A
    LD A,#ED
    LD (#FDFE),A
    LD A,#4D
    LD (#FDFF),A

    LD A,#FE
    LD I,A
    IM 2

    LD A,7
    LD B,1
    LD DE,#0203
    LD HL,#0405
    LD C,#E6
    OUT (C),0

    ; sync to the frame interrupt once
    EI
    HALT
    DI

    ; 3606T to the first border line
    LD B,250
.idelay:
    DJNZ .idelay
    DUP 74
    NOP
    EDUP
    LD B,1
    JP FrameStart

MainLoop:
    ; 3584T between frames including the final OUT and JP
    LD B,253
.delay:
    DJNZ .delay
    DUP 66
    NOP
    EDUP
    LD B,1

FrameStart:
    ; top border, 64 lines
{% for line in top %}{{ line }}
{% endfor %}
    ; side borders, 192 lines
{% for line in side %}{{ line }}
{% endfor %}
    ; bottom border, 48 lines
{% for line in bottom %}{{ line }}
{% endfor %}
    OUT (C),0
    JP MainLoop

ScrData:
{% if incbin %}    INCBIN "{{ name }}.bsc",0,6912
{% else %}{% for line in data %}{{ line }}
{% endfor %}{% endif %}
    SAVESNA "{{ name }}.sna",Start
"""


class _LineEmitter:
    """Collects instructions for one stretch of border lines."""

    def __init__(self, color: int = 0) -> None:
        self.color = color
        self.lines: List[str] = []
        self.nops = 0

    def flush(self) -> None:
        if self.nops == 1:
            self.lines.append("    NOP")
        elif self.nops > 1:
            self.lines.extend([f"    DUP {self.nops}", "    NOP", "    EDUP"])
        self.nops = 0

    def step(self, color: int, t: int) -> int:
        """Output ``color`` at time ``t``; returns the new time."""
        if color != self.color:
            self.flush()
            self.lines.append(f"    {COLOR_OUT[color]}")
            self.color = color
            return t + OUT_TSTATES
        self.nops += 1
        return t + NOP_TSTATES

    def pad(self, t: int, until: int) -> int:
        if t < until:
            self.nops += (until - t) // NOP_TSTATES
            return until
        return t

    def full_line(self, segments: Sequence[int]) -> None:
        t = 0
        while t < VISIBLE_TSTATES:
            t = self.step(segments[t // NOP_TSTATES], t)
        self.pad(t, LINE_TSTATES)
        self.flush()

    def side_line(self, segments: Sequence[int]) -> None:
        left = segments[:8]
        right = segments[8:]
        t = 0
        while t < LEFT_BORDER_TSTATES:
            t = self.step(left[t // NOP_TSTATES], t)
        t = self.pad(t, RIGHT_BORDER_START)
        if right[0] != self.color:
            t = self.step(right[0], t)
        else:
            t = self.pad(t, RIGHT_BORDER_TSTATES)
        while t < VISIBLE_TSTATES:
            t = self.step(right[(t - RIGHT_BORDER_TSTATES) // NOP_TSTATES], t)
        self.pad(t, LINE_TSTATES)
        self.flush()


def format_db_lines(data: bytes, per_line: int = 16) -> List[str]:
    lines = []
    for i in range(0, len(data), per_line):
        chunk = data[i:i + per_line]
        lines.append("    DB " + ",".join(f"#{b:02X}" for b in chunk))
    return lines


def export_border_asm(bsc: bytes, name: str = "border", incbin: bool = False) -> str:
    """Generate the sjasmplus source for a BSC screen.

    ``name`` is used for the ``SAVESNA`` target and, with ``incbin``, for
    the ``.bsc`` file the screen is included from instead of ``DB`` lines.
    """
    expected = get_descriptor(ScreenFormat.BSC).total_size
    if len(bsc) < expected:
        raise ConversionError(f"BSC data needs {expected} bytes, got {len(bsc)}")
    border = bsc[SCR_SIZE:SCR_SIZE + BORDER_SIZE]
    emitter = _LineEmitter()

    sections = []
    side_end = TOP_LINES + SIDE_LINES
    spans = ((0, TOP_LINES, True), (TOP_LINES, side_end, False), (side_end, side_end + BOTTOM_LINES, True))
    for start, stop, full in spans:
        emitter.lines = []
        for y in range(start, stop):
            segments = unpack_line(border, y)
            if full:
                emitter.full_line(segments)
            else:
                emitter.side_line(segments)
        sections.append(emitter.lines)

    template = jinja2.Template(asm_template)
    return template.render(
        name=name,
        incbin=incbin,
        top=sections[0],
        side=sections[1],
        bottom=sections[2],
        data=format_db_lines(bsc[:SCR_SIZE]),
    )
