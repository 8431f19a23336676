"""EnvironmentState enum."""

from enum import StrEnum


class EnvironmentState(StrEnum):
    """Lifecycle states of one isolated execution environment.

      PROVISIONING - the unit is being created and started.
      IDLE         - the unit is running and waiting for its single program.
      RUNNING      - the program is being streamed in and output drained.
      COMPLETED    - output was drained to end-of-stream before the deadline.
      TIMED_OUT    - the deadline elapsed first; output is partial.
      FAILED       - the run raised (write or drain failure).
      CLEANING     - the unit is being stopped.
      GONE         - the unit has been torn down (or abandoned).
    """

    PROVISIONING = "PROVISIONING"
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    TIMED_OUT = "TIMED_OUT"
    FAILED = "FAILED"
    CLEANING = "CLEANING"
    GONE = "GONE"
