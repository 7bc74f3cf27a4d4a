"""Mapping of application source files to test targets."""

from pathlib import Path, PurePosixPath

from .matcher import MatchTarget

SOURCE_SUFFIXES = (".ts", ".tsx", ".js", ".jsx")
TEST_SUFFIX = ".spec.ts"


def map_code_to_test(file_path: str) -> MatchTarget:
    """Map a source path to its (feature, test name) target.

    The feature is the directory below the features root and the test name
    is the file name without extension, e.g.
    ``src/features/user/createUser.ts`` -> ``("user", "createUser")``.
    Paths too shallow to carry a feature map to ``"default"``.
    """
    path = PurePosixPath(file_path.replace("\\", "/"))
    name = path.name
    for suffix in SOURCE_SUFFIXES:
        if name.endswith(suffix):
            name = name[: -len(suffix)]
            break

    parts = path.parts
    feature = parts[2] if len(parts) >= 3 else "default"
    return MatchTarget(feature=feature, test_name=name)


def spec_path_for(target: MatchTarget, tests_dir: Path) -> Path:
    """Return the spec file path for a target under ``tests_dir``."""
    return tests_dir / target.feature / f"{target.test_name}{TEST_SUFFIX}"

