from collections.abc import Sequence
from typing import Union


class CIAOptsError(Exception):
    def __init__(self, message: str) -> None:
        error_page = "https://ciaopts.readthedocs.io/en/latest/api/errors.html"
        module_name = self.__class__.__module__
        class_name = self.__class__.__name__
        error_msg = f"{message} (see {error_page}#{module_name}.{class_name})"
        super().__init__(error_msg)


class ConfigurationError(CIAOptsError):
    r"""Invalid Solver Configuration.

    This error occurs when a solver option has an invalid type or value, when options
    are combined in an unsupported way (*e.g.* limited-memory Finito with randomized
    sweeping), or when no step size can be resolved from the provided step size,
    Lipschitz constants, and adaptive flag.
    """


class DimensionMismatchError(CIAOptsError):
    r"""Dimension Mismatch.

    This error occurs when an input has an unexpected dimension or size, for instance
    when a component gradient does not have the same shape as the iterate, or when the
    number of components disagrees with ``N``.
    """

    def __init__(
        self,
        input_name: str,
        actual_dim: Union[int, tuple[int, ...]],
        required_dim: Union[int, tuple[int, ...], Sequence[int]],
        custom_msg="",
    ) -> None:

        if custom_msg:
            msg = custom_msg
        elif isinstance(required_dim, list) and len(required_dim) > 1:
            msg = f"Input {input_name} is expected to have any dimension in {required_dim} but has {actual_dim}."
        else:
            msg = f"Input {input_name} is expected to have dimension {required_dim} but has {actual_dim}."

        super().__init__(msg)


class NumericDomainError(CIAOptsError):
    r"""Numeric Domain Error.

    This error occurs when the adaptive step size search cannot find a Lipschitz
    estimate satisfying the descent condition within the allowed number of doublings.
    """

    def __init__(self, component: int, max_doublings: int) -> None:
        super().__init__(
            f"Backtracking failed for component {component}: the descent condition still does not hold after {max_doublings} doublings of the Lipschitz estimate."
        )
