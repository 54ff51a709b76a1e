import pyvisa

GPIB_BOARD_ID = 0


def gpib_resource(address: int, board: int = GPIB_BOARD_ID) -> str:
    return f"GPIB{board}::{address}::INSTR"


def open_resource(resource: str, timeout_ms: int = 1000, rm=None):
    if rm is None:
        rm = pyvisa.ResourceManager()
    inst = rm.open_resource(resource)
    inst.timeout = timeout_ms
    # the 7150 answers with a fixed-length record; reads strip the terminator themselves
    inst.write_termination = "\n"
    return inst
