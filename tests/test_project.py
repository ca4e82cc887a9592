from pathlib import Path

from setuptools.config.pyprojecttoml import read_configuration

from expateats.schemas import EventResponse, PlaceResponse, ReviewResponse, UserResponse

ROOT = Path(__file__).resolve().parent.parent


def test_distribution_ships_every_subpackage():
    config = read_configuration(ROOT / "pyproject.toml")
    packages = config["tool"]["setuptools"]["packages"]

    for name in ("expateats", "expateats.routes", "expateats.services", "expateats.utils", "expateats.schemas"):
        assert name in packages


def test_response_schemas_read_orm_objects(api):
    place = api.create_place()

    for schema in (EventResponse, PlaceResponse, ReviewResponse, UserResponse):
        assert schema.model_config["from_attributes"] is True

    assert PlaceResponse.model_validate(place).name == "Mercado Bio"
