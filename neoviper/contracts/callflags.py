from enum import IntFlag


class CallFlags(IntFlag):
    """
    Describes the required call permissions for contract functions.
    """

    NONE = 0
    READ_STATES = 0x1
    WRITE_STATES = 0x02
    ALLOW_CALL = 0x04
    ALLOW_NOTIFY = 0x08
    STATES = READ_STATES | WRITE_STATES
    READ_ONLY = READ_STATES | ALLOW_CALL
    ALL = STATES | ALLOW_CALL | ALLOW_NOTIFY

    @classmethod
    def from_csharp_name(cls, input: str):
        """
        Parse the comma separated names used by the node (i.e. ``"ReadStates, AllowCall"``).

        Raises:
            ValueError: for unknown names.
        """
        result = CallFlags.NONE
        for name in input.split(","):
            flag = _CSHARP_NAMES.get(name.strip())
            if flag is None:
                raise ValueError(f"{name.strip()} is not a valid member of {cls.__name__}")
            result |= flag
        return result


_CSHARP_NAMES = {
    "None": CallFlags.NONE,
    "ReadStates": CallFlags.READ_STATES,
    "WriteStates": CallFlags.WRITE_STATES,
    "AllowCall": CallFlags.ALLOW_CALL,
    "AllowNotify": CallFlags.ALLOW_NOTIFY,
    "States": CallFlags.STATES,
    "ReadOnly": CallFlags.READ_ONLY,
    "All": CallFlags.ALL,
}
