"""Validate command - one build with parsed diagnostics."""

from pydantic import BaseModel, Field

from untwine.runner.build import BuildValidator


class ValidateCommand(BaseModel):
    """Build the project and summarize its errors by conflict
    category."""

    configuration: str | None = Field(
        default=None,
        description="Build configuration (defaults to config.build.configuration)",
    )
    details: bool = Field(
        default=False,
        description="Also print the first errors in full",
    )

    async def run_workflow(self, state: "State") -> int:
        validator = BuildValidator.from_config(state.config)
        result = validator.validate(self.configuration)
        print(result.summary())
        if self.details:
            print()
            print(result.detailed_errors())
        return 0 if result.build_successful else 1
