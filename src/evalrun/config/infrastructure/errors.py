"""Error types raised while building or validating a test run configuration."""

from evalrun.core.errors import EvalRunError


class ConfigurationError(EvalRunError):
    """Raised synchronously, before any remote call, when a configuration is misused."""


class MissingConfigurationError(ConfigurationError):
    """Raised by run() when required configuration is absent or contradictory."""

    def __init__(self, name: str, problems: list[str]) -> None:
        self.problems = problems
        label = f' "{name}"' if name else ""
        detail = ", \n\t".join(problems)
        super().__init__(
            f"Failed to start test run{label}: missing required configuration:\n\t{detail}"
        )


class SchemaValidationError(ConfigurationError):
    """Raised when a data schema declares a singleton role more than once."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Failed to validate data structure: {reason}")


class DataValidationError(ConfigurationError):
    """Raised when a data value does not match the role declared for its column."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Failed to validate data: {reason}")


class DuplicateEvaluatorError(ConfigurationError):
    """Raised when two evaluators (or two names of a combined evaluator) collide."""

    def __init__(self, name: str, all_names: list[str]) -> None:
        self.all_names = all_names
        super().__init__(
            f'Failed to configure evaluators: multiple evaluators with the same name "{name}"'
            f" found (all names: {', '.join(all_names)})"
        )


class InvalidEvaluatorError(ConfigurationError):
    """Raised when an evaluator is neither a name nor a supported evaluator spec."""

    def __init__(self, kind: str) -> None:
        super().__init__(
            f"Failed to configure evaluators: unsupported evaluator type {kind}; expected a"
            " name, NamedEvaluator, LocalEvaluator or CombinedEvaluator"
        )


class InvalidEmailError(ConfigurationError):
    """Raised when a human evaluation config contains an invalid email address."""

    def __init__(self, email: str) -> None:
        super().__init__(
            f"Failed to configure human evaluation: invalid email address: {email}"
        )


class HumanEvaluationConfigMissingError(ConfigurationError):
    """Raised when a platform evaluator of type Human is used without a review config."""

    def __init__(self, evaluator_names: list[str]) -> None:
        super().__init__(
            "Failed to configure evaluators: human evaluator(s) "
            f"{', '.join(evaluator_names)} found, but no human evaluation config was provided"
        )


class InvalidConcurrencyError(ConfigurationError):
    """Raised when a concurrency below 1 is requested."""

    def __init__(self, concurrency: int) -> None:
        super().__init__(
            f"Failed to configure concurrency: expected an integer >= 1, got {concurrency}"
        )


class TestRunAlreadyStartedError(ConfigurationError):
    """Raised when run() is called a second time on the same builder."""

    __test__ = False

    def __init__(self, name: str) -> None:
        super().__init__(
            f'Failed to start test run "{name}": this builder has already been run'
        )


class MissingEnvVarsError(EvalRunError):
    """Raised when one or more environment variables referenced by settings are not set."""

    def __init__(self, missing_vars: list[str]) -> None:
        self.missing_vars = missing_vars
        var_list = ", ".join(sorted(missing_vars))
        super().__init__(
            f"Failed to load settings: missing environment variables: {var_list}"
        )


class SettingsValidationError(EvalRunError):
    """Raised when loaded client settings fail validation."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"Failed to validate settings: {reason}")


class SettingsLoadError(EvalRunError):
    """Raised when the settings file cannot be opened or read."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Failed to load settings: file not found: {path}")
