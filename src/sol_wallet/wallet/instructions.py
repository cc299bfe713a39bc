"""Decoding of native SOL transfers from raw transactions.

System-program instruction data starts with a little-endian ``u32``
discriminant.  A Transfer (discriminant 2) is followed by a little-endian
``u64`` lamport amount, and its first two accounts are the sender and the
receiver.  Every other system instruction is decoded only as far as its kind.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from datetime import datetime
from enum import IntEnum
from typing import Optional, Sequence, Union

from solders.transaction import VersionedTransaction

from sol_wallet.exceptions import InstructionDecodeError
from sol_wallet.wallet.models import TransferEvent

SYSTEM_PROGRAM_ID = "11111111111111111111111111111111"

_DISCRIMINANT = struct.Struct("<I")
_TRANSFER = struct.Struct("<IQ")

TRANSFER_DATA_LENGTH = _TRANSFER.size  # 12


class SystemInstructionKind(IntEnum):
    CREATE_ACCOUNT = 0
    ASSIGN = 1
    TRANSFER = 2
    CREATE_ACCOUNT_WITH_SEED = 3
    ADVANCE_NONCE_ACCOUNT = 4
    WITHDRAW_NONCE_ACCOUNT = 5
    INITIALIZE_NONCE_ACCOUNT = 6
    AUTHORIZE_NONCE_ACCOUNT = 7
    ALLOCATE = 8
    ALLOCATE_WITH_SEED = 9
    ASSIGN_WITH_SEED = 10
    TRANSFER_WITH_SEED = 11
    UPGRADE_NONCE_ACCOUNT = 12


@dataclass(frozen=True)
class TransferInstruction:
    sender: str
    receiver: str
    lamports: int


@dataclass(frozen=True)
class OtherSystemInstruction:
    """Any system instruction that is not a plain Transfer."""

    discriminant: int

    @property
    def kind(self) -> Optional[SystemInstructionKind]:
        try:
            return SystemInstructionKind(self.discriminant)
        except ValueError:
            return None


SystemInstruction = Union[TransferInstruction, OtherSystemInstruction]


def decode_system_instruction(data: bytes, accounts: Sequence[str]) -> SystemInstruction:
    """Decode one system-program instruction.

    *accounts* are the instruction's account addresses, already resolved
    against the message's account keys.

    Raises
    ------
    InstructionDecodeError
        If the payload is too short for its kind, or a Transfer names fewer
        than two accounts.
    """
    if len(data) < _DISCRIMINANT.size:
        raise InstructionDecodeError(
            f"system instruction data is {len(data)} bytes, "
            f"need at least {_DISCRIMINANT.size} for the discriminant"
        )
    (discriminant,) = _DISCRIMINANT.unpack_from(data)
    if discriminant != SystemInstructionKind.TRANSFER:
        return OtherSystemInstruction(discriminant)

    if len(data) < TRANSFER_DATA_LENGTH:
        raise InstructionDecodeError(
            f"transfer instruction data is {len(data)} bytes, "
            f"expected {TRANSFER_DATA_LENGTH}"
        )
    if len(accounts) < 2:
        raise InstructionDecodeError(
            f"transfer instruction has {len(accounts)} accounts, expected 2"
        )
    _, lamports = _TRANSFER.unpack_from(data)
    return TransferInstruction(sender=accounts[0], receiver=accounts[1], lamports=lamports)


def _resolve(account_keys: Sequence[str], index: int) -> str:
    if index >= len(account_keys):
        raise InstructionDecodeError(
            f"account index {index} out of range ({len(account_keys)} account keys)"
        )
    return account_keys[index]


def decode_transfers(
    raw: bytes,
    timestamp: Optional[datetime],
    address: str,
    loaded_addresses: Sequence[str] = (),
) -> list[TransferEvent]:
    """Extract every native transfer in a wire-format transaction.

    Instructions for other programs, and system instructions other than
    Transfer, are skipped.  ``is_sender`` is set when the sender is
    *address*.

    Account indices of a v0 message past its static keys refer to
    *loaded_addresses*: the lookup-table addresses the node resolved,
    writable ones first, then readonly.
    """
    try:
        tx = VersionedTransaction.from_bytes(raw)
    except Exception as exc:
        raise InstructionDecodeError(f"cannot decode transaction: {exc}") from exc

    message = tx.message
    account_keys = [str(key) for key in message.account_keys]
    account_keys.extend(loaded_addresses)

    events: list[TransferEvent] = []
    for compiled in message.instructions:
        program_id = _resolve(account_keys, compiled.program_id_index)
        if program_id != SYSTEM_PROGRAM_ID:
            continue

        accounts = [_resolve(account_keys, i) for i in bytes(compiled.accounts)]
        decoded = decode_system_instruction(bytes(compiled.data), accounts)
        if not isinstance(decoded, TransferInstruction):
            continue

        events.append(
            TransferEvent(
                amount=decoded.lamports,
                sender=decoded.sender,
                receiver=decoded.receiver,
                timestamp=timestamp,
                is_sender=decoded.sender == address,
            )
        )
    return events
