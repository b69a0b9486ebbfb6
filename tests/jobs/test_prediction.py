"""Tests for manual and batch prediction."""

import pandas as pd
import pytest

from mlwizard.error_handling import ApiError, ValidationError
from mlwizard.jobs.prediction import (
    BatchPrediction,
    EvaluationPrediction,
    PredictionSchema,
    classify_prediction,
    coerce_input_value,
    parse_assignments,
    predict_csv,
    predict_manual,
    prediction_schema,
    save_predictions,
)

SCHEMA_PATH = "/prediction/schema/exp-1"


@pytest.mark.parametrize(
    "value,expected",
    [("42", 42), (" 3.5 ", 3.5), ("yes", "yes"), ("", ""), (7, 7)],
)
def test_coerce_input_value(value, expected):
    assert coerce_input_value(value) == expected


def test_parse_assignments():
    assert parse_assignments(["age=41", "city = Paris", "note=a=b"]) == {
        "age": "41",
        "city": " Paris",
        "note": "a=b",
    }
    with pytest.raises(ValidationError):
        parse_assignments(["age"])


@pytest.mark.asyncio
async def test_prediction_schema(service, client):
    service.on(
        "GET",
        SCHEMA_PATH,
        {"columns": ["age", "city", "churn"], "target": "churn", "example": {"age": 30}},
    )

    schema = await prediction_schema(client, "exp-1")

    assert schema.input_columns == ["age", "city"]
    assert schema.example == {"age": 30}


@pytest.mark.asyncio
async def test_empty_schema_is_an_error(service, client):
    service.on("GET", SCHEMA_PATH, {"columns": []})
    with pytest.raises(ApiError):
        await prediction_schema(client, "exp-1")


@pytest.mark.asyncio
async def test_predict_manual_coerces_values(service, client):
    service.on("POST", "/prediction/predict-manual/", {"prediction": 1})
    schema = PredictionSchema("exp-1", ("age", "city", "churn"), target="churn")

    prediction = await predict_manual(
        client, "exp-1", {"age": "41", "city": "Paris"}, schema
    )

    assert prediction == 1
    request = service.calls("POST", "/prediction/predict-manual/")[0]
    assert b'"age":41' in request.content.replace(b" ", b"")


@pytest.mark.asyncio
async def test_predict_manual_checks_schema(service, client):
    schema = PredictionSchema("exp-1", ("age", "city", "churn"), target="churn")

    with pytest.raises(ValidationError, match="Missing input values for: city"):
        await predict_manual(client, "exp-1", {"age": "41"}, schema)
    with pytest.raises(ValidationError, match="Unknown input columns: zip"):
        await predict_manual(
            client, "exp-1", {"age": "41", "city": "x", "zip": "1"}, schema
        )
    assert service.requests == []


def test_classify_evaluation():
    result = classify_prediction(
        {
            "mode": "evaluation",
            "metrics": {"accuracy": 0.5},
            "y_true": [1, 0],
            "y_pred": [1, 1],
            "confusion_matrix": [[0, 1], [0, 1]],
        }
    )

    assert isinstance(result, EvaluationPrediction)
    assert result.accuracy == 0.5
    assert result.confusion_matrix == ((0, 1), (0, 1))


def test_classify_prediction_only():
    result = classify_prediction(
        {
            "mode": "prediction_only",
            "target_column": "churn",
            "filled_dataset_preview": [{"age": 41, "churn": 1}, {"age": 20, "churn": 0}],
        }
    )

    assert isinstance(result, BatchPrediction)
    assert result.predictions == (1, 0)


@pytest.mark.asyncio
async def test_predict_csv_requires_csv(service, client, tmp_path):
    path = tmp_path / "rows.txt"
    path.write_text("age\n1\n")

    with pytest.raises(ValidationError, match="Expected a .csv file"):
        await predict_csv(client, "exp-1", path)
    assert service.requests == []


@pytest.mark.asyncio
async def test_predict_csv(service, client, tmp_path):
    path = tmp_path / "rows.csv"
    path.write_text("age\n41\n")
    service.on(
        "POST",
        "/prediction/predict-csv/",
        {"mode": "prediction_only", "data": {"predictions": ["yes"]}},
    )

    result = await predict_csv(client, "exp-1", path)

    assert result == BatchPrediction(predictions=("yes",))


def test_save_predictions_drops_probabilities(tmp_path):
    result = BatchPrediction(
        preview=(
            {"age": 41, "churn": 1, "class_probabilities": {"0": 0.1, "1": 0.9}},
        ),
        predictions=(1,),
    )

    written = save_predictions(result, tmp_path / "out" / "predictions.csv")

    frame = pd.read_csv(written)
    assert list(frame.columns) == ["age", "churn"]
    assert frame["churn"].tolist() == [1]


def test_save_evaluation_without_preview(tmp_path):
    result = EvaluationPrediction(y_true=(1, 0), y_pred=(1, 1))
    frame = pd.read_csv(save_predictions(result, tmp_path / "eval.csv"))
    assert frame.to_dict("list") == {"y_true": [1, 0], "y_pred": [1, 1]}


def test_save_nothing_is_an_error(tmp_path):
    with pytest.raises(ValidationError):
        save_predictions(BatchPrediction(), tmp_path / "empty.csv")
