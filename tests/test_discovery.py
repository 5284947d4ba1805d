import json

import pytest

from biodock import discovery
from biodock.models import PipelineDefinition
from biodock.result import Error, Success


@pytest.fixture
def dockerfile(tmp_path):
    path = tmp_path / "Dockerfile.src"
    path.write_text("FROM staphb/fastqc:latest\n")
    return path


@pytest.fixture
def catalog(tmp_path):
    return tmp_path / "pipelines"


def test_save_and_load_round_trip(pipeline, dockerfile, catalog):
    result = discovery.save_pipeline(pipeline, dockerfile, catalog)
    assert result == Success(str(catalog / "fastqc-only"), "Successfully saved pipeline.")
    assert (catalog / "fastqc-only" / "Dockerfile").read_text() == dockerfile.read_text()
    assert discovery.get_available_pipelines(catalog) == [pipeline]
    assert discovery.get_pipeline("fastqc-only", catalog) == pipeline
    assert discovery.list_pipeline_ids(catalog) == ["fastqc-only"]


def test_missing_dockerfile_is_error(pipeline, catalog, tmp_path):
    result = discovery.save_pipeline(pipeline, tmp_path / "nope", catalog)
    assert isinstance(result, Error)
    assert not (catalog / "fastqc-only").exists()


def test_incomplete_and_broken_entries_are_skipped(pipeline, dockerfile, catalog):
    discovery.save_pipeline(pipeline, dockerfile, catalog)
    (catalog / "no-dockerfile").mkdir()
    (catalog / "no-dockerfile" / "config.json").write_text("{}")
    broken = catalog / "broken"
    broken.mkdir()
    (broken / "Dockerfile").write_text("FROM x\n")
    (broken / "config.json").write_text("{not json")
    assert discovery.list_pipeline_ids(catalog) == ["fastqc-only"]


def test_missing_catalog_is_empty(tmp_path):
    assert discovery.get_available_pipelines(tmp_path / "nowhere") == []
    assert discovery.get_pipeline("fastqc-only", tmp_path / "nowhere") is None


def test_camel_case_definition(catalog):
    entry = catalog / "trim"
    entry.mkdir(parents=True)
    (entry / "Dockerfile").write_text("FROM x\n")
    (entry / "config.json").write_text(json.dumps({
        "id": "trim",
        "name": "Trimmer",
        "description": "Adapter trimming",
        "dockerImage": "ignored/image",
        "command": ["trim", "/data/*.fq.gz"],
        "inputFileTypes": ["fq"],
        "requiredMemory": "4GB",
    }))
    pipeline = discovery.get_pipeline("trim", catalog)
    assert pipeline.command == ("trim", "/data/*.fq.gz")
    assert pipeline.input_file_types == ("fq",)
    assert pipeline.required_memory == "4GB"
    assert pipeline.version == "latest"


@pytest.mark.parametrize("bad_id", ["FastQC", "has space", "-leading", "a/b", ""])
def test_invalid_ids_are_rejected(bad_id):
    with pytest.raises(ValueError):
        PipelineDefinition.from_dict({"id": bad_id, "name": "x", "command": ["x"]})


def test_command_must_be_a_list():
    with pytest.raises(ValueError):
        PipelineDefinition.from_dict({"id": "x", "name": "x", "command": "fastqc /data"})


def test_validate_pipeline(pipeline, dockerfile, catalog):
    assert discovery.validate_pipeline(pipeline, catalog) == Error("Pipeline fastqc-only does not exist.")

    discovery.save_pipeline(pipeline, dockerfile, catalog)
    assert discovery.validate_pipeline(pipeline, catalog).data == pipeline

    (catalog / "fastqc-only" / "Dockerfile").write_text("")
    assert discovery.validate_pipeline(pipeline, catalog).message == "Found empty dockerfile for pipeline fastqc-only."

    (catalog / "fastqc-only" / "Dockerfile").unlink()
    assert discovery.validate_pipeline(pipeline, catalog).message == "Could not find dockerfile for pipeline fastqc-only."


def test_validate_pipeline_bad_json(pipeline, dockerfile, catalog):
    discovery.save_pipeline(pipeline, dockerfile, catalog)
    (catalog / "fastqc-only" / "config.json").write_text("[]")
    result = discovery.validate_pipeline(pipeline, catalog)
    assert result.message.startswith("Failed to parse config.json")


def test_delete_pipeline(pipeline, dockerfile, catalog):
    discovery.save_pipeline(pipeline, dockerfile, catalog)
    assert discovery.delete_pipeline(pipeline, catalog)
    assert not (catalog / "fastqc-only").exists()
    assert not discovery.delete_pipeline("fastqc-only", catalog)


def test_validate_pipeline_by_id(pipeline, dockerfile, catalog):
    assert discovery.validate_pipeline("ghost", catalog) == Error("Pipeline ghost does not exist.")
    discovery.save_pipeline(pipeline, dockerfile, catalog)
    assert discovery.validate_pipeline("fastqc-only", catalog).data == pipeline
