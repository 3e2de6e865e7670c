from importlib.util import module_from_spec, spec_from_file_location
from pathlib import Path

EXAMPLE = Path(__file__).parent.parent / "examples" / "basic" / "app.py"


def load_example():
    module_spec = spec_from_file_location("basic_app", EXAMPLE)
    module = module_from_spec(module_spec)
    module_spec.loader.exec_module(module)
    return module


def test_example_table_has_repository_columns():
    app = load_example()
    config = app.VisitedCityRepository.config

    for column in ("created_at", "updated_at", "deleted_at"):
        assert column in config.columns
    for column in config.columns:
        assert f"    {column} " in app.CREATE_VISITED_CITY
