"""Async HTTP client for the remote AutoML training service."""

import json
import logging
from pathlib import Path
from typing import Any

import httpx

from mlwizard.error_handling import ApiError, ErrorCategory

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 120.0


def _form(**fields: Any) -> dict[str, str]:
    """Build form fields the way the service expects them.

    Booleans become "true"/"false", containers are JSON-encoded and None
    values are dropped.
    """
    form: dict[str, str] = {}
    for key, value in fields.items():
        if value is None:
            continue
        if isinstance(value, bool):
            form[key] = "true" if value else "false"
        elif isinstance(value, (dict, list, tuple)):
            form[key] = json.dumps(value)
        else:
            form[key] = str(value)
    return form


def unwrap_payload(body: Any) -> Any:
    """Strip the service's response envelopes.

    Results may arrive as ``{"data": {"experiment_results": ...}}``,
    ``{"experiment_results": ...}``, ``{"data": ...}`` or bare.
    """
    if not isinstance(body, dict):
        return body
    data = body.get("data")
    if isinstance(data, dict) and isinstance(data.get("experiment_results"), dict):
        return data["experiment_results"]
    if isinstance(body.get("experiment_results"), dict):
        return body["experiment_results"]
    if isinstance(data, (dict, list)):
        return data
    return body


def error_message_from(response: httpx.Response) -> str:
    """Extract a human readable message from a failed response."""
    content_type = response.headers.get("content-type", "")
    status = f"{response.status_code} {response.reason_phrase}".strip()

    if "application/json" in content_type:
        try:
            payload = response.json()
        except ValueError:
            return f"Failed to parse error response: {status}"
        if isinstance(payload, dict):
            detail = payload.get("detail") or payload.get("message")
            if detail:
                return detail if isinstance(detail, str) else json.dumps(detail)
        return f"Error: {status}"

    text = response.text
    if "<!DOCTYPE html>" in text or "<html" in text:
        logger.error(f"Server returned HTML instead of JSON: {text[:200]}")
        return f"Server returned HTML instead of JSON. Status: {response.status_code}"
    return f"Error: {status} - {text[:200]}"


class WizardClient:
    """Thin async wrapper around the training service REST API.

    Every request carries ``Authorization: Bearer <token>``. Methods return
    unwrapped JSON payloads and raise :class:`ApiError` on failure.
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._transport = transport
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        else:
            logger.warning(
                "No authentication token available. Requests may be rejected."
            )
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def __aenter__(self) -> "WizardClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        data: dict[str, str] | None = None,
        files: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> httpx.Response:
        logger.debug(f"{method} {path}")
        try:
            return await self._http.request(
                method, path, params=params, data=data, files=files, json=json_body
            )
        except httpx.TimeoutException as e:
            raise ApiError(
                f"Request to {path} timed out",
                category=ErrorCategory.TIMEOUT,
                original_error=e,
            ) from e
        except httpx.HTTPError as e:
            raise ApiError(
                f"Request to {path} failed: {e}",
                category=ErrorCategory.NETWORK,
                original_error=e,
            ) from e

    def _parse(self, response: httpx.Response) -> Any:
        if not response.is_success:
            raise ApiError(error_message_from(response), status_code=response.status_code)

        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type:
            logger.warning(f"Response is not JSON: {content_type or 'no content type'}")
            return {}

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Invalid JSON response: {response.text[:200]}")
            raise ApiError(
                "Failed to parse JSON response from server",
                status_code=response.status_code,
                original_error=e,
            ) from e

    async def _call(self, method: str, path: str, **kwargs) -> Any:
        response = await self._request(method, path, **kwargs)
        return unwrap_payload(self._parse(response))

    # Dataset endpoints

    async def upload_dataset(
        self, path: str | Path, custom_missing_symbol: str | None = None
    ) -> dict[str, Any]:
        """Upload a CSV file and return its overview (dataset_id, statistics)."""
        file_path = Path(path)
        with open(file_path, "rb") as fh:
            return await self._call(
                "POST",
                "/dataset/dataset-overview/",
                data=_form(custom_missing_symbol=custom_missing_symbol or None),
                files={"file": (file_path.name, fh, "text/csv")},
            )

    async def preview_dataset(
        self, dataset_id: str, stage: str = "latest"
    ) -> dict[str, Any]:
        return await self._call(
            "POST",
            "/dataset/preview-data/",
            data=_form(dataset_id=dataset_id, stage=stage),
        )

    async def handle_missing_values(
        self,
        dataset_id: str,
        strategy: str,
        custom_missing_symbol: str | None = None,
    ) -> dict[str, Any]:
        return await self._call(
            "POST",
            "/dataset/handle-dataset/",
            data=_form(
                dataset_id=dataset_id,
                strategy=strategy,
                custom_missing_symbol=custom_missing_symbol or None,
            ),
        )

    async def detect_task_type(
        self, dataset_id: str, target_column: str
    ) -> dict[str, Any]:
        return await self._call(
            "POST",
            "/dataset/detect-task-type/",
            data=_form(dataset_id=dataset_id, target_column=target_column),
        )

    async def feature_importance_preview(
        self, dataset_id: str, target_column: str
    ) -> dict[str, Any]:
        """Rank candidate features against the target.

        Raises:
            ApiError: If the response lacks feature importance or task type
        """
        payload = await self._call(
            "POST",
            "/dataset/feature-importance-preview/",
            data=_form(dataset_id=dataset_id, target_column=target_column),
        )
        importance = payload.get("feature_importance")
        task_type = payload.get("task_type")
        if not importance or not task_type:
            raise ApiError("Invalid response format from feature importance analysis")
        return {
            "feature_importance": importance,
            "task_type": task_type,
            "target_column": target_column,
        }

    async def save_dataset(
        self, dataset_id: str, target_column: str, columns_to_keep: list[str]
    ) -> dict[str, Any]:
        return await self._call(
            "POST",
            "/dataset/save-dataset/",
            data=_form(
                dataset_id=dataset_id,
                target_column=target_column,
                columns_to_keep=list(columns_to_keep),
            ),
        )

    async def check_class_imbalance(
        self, dataset_id: str, target_column: str | None = None
    ) -> dict[str, Any]:
        return await self._call(
            "POST",
            "/dataset/check-class-imbalance/",
            data=_form(dataset_id=dataset_id, target_column=target_column),
        )

    async def preprocess_dataset(
        self,
        dataset_id: str,
        normalization_method: str,
        balance_strategy: str,
        balance_method: str | None = None,
    ) -> dict[str, Any]:
        return await self._call(
            "POST",
            "/dataset/data-preprocess/",
            data=_form(
                dataset_id=dataset_id,
                normalization_method=normalization_method,
                balance_strategy=balance_strategy,
                balance_method=balance_method,
            ),
        )

    async def list_datasets(self) -> list[dict[str, Any]]:
        payload = await self._call("GET", "/dataset-management/list-datasets/")
        return payload if isinstance(payload, list) else payload.get("datasets", [])

    async def delete_dataset(self, dataset_id: str) -> dict[str, Any]:
        return await self._call(
            "DELETE", f"/dataset-management/delete-dataset/{dataset_id}"
        )

    async def clone_dataset(self, dataset_id: str) -> str:
        """Copy a (public) dataset into the caller's account; returns the new id."""
        payload = await self._call(
            "POST", f"/dataset-management/clone-dataset/{dataset_id}"
        )
        new_id = payload.get("new_dataset_id") if isinstance(payload, dict) else None
        if not new_id:
            raise ApiError("No dataset ID returned from the server")
        return str(new_id)

    async def dataset_download_url(self, dataset_id: str, stage: str) -> str:
        payload = await self._call(
            "GET",
            f"/dataset-management/download/{dataset_id}",
            params={"stage": stage},
        )
        url = payload.get("download_url") if isinstance(payload, dict) else None
        if not url:
            raise ApiError("No download URL received")
        return url

    async def download_file(self, url: str, destination: str | Path) -> Path:
        """Stream ``url`` to ``destination``.

        Download links are pre-signed, so the request goes out without the
        service's auth header.
        """
        target = Path(destination)
        async with httpx.AsyncClient(
            timeout=self._http.timeout, transport=self._transport
        ) as http:
            try:
                async with http.stream("GET", url) as response:
                    if not response.is_success:
                        await response.aread()
                        raise ApiError(
                            error_message_from(response),
                            status_code=response.status_code,
                        )
                    with open(target, "wb") as fh:
                        async for chunk in response.aiter_bytes():
                            fh.write(chunk)
            except httpx.HTTPError as e:
                raise ApiError(
                    f"Download failed: {e}",
                    category=ErrorCategory.NETWORK,
                    original_error=e,
                ) from e
        logger.info(f"Downloaded {url} to {target}")
        return target

    # Training endpoints

    async def list_algorithms(self, task_type: str) -> list[str]:
        payload = await self._call(
            "GET", "/algorithms/get-algorithms/", params={"task_type": task_type}
        )
        return payload if isinstance(payload, list) else payload.get("algorithms", [])

    async def get_hyperparameters(self, algorithm: str) -> dict[str, Any]:
        payload = await self._call(
            "GET", "/algorithms/get-hyperparameters/", params={"algorithm": algorithm}
        )
        if not isinstance(payload, dict):
            raise ApiError(f"Unexpected hyperparameters response for {algorithm}")
        return payload.get("hyperparameters", {})

    @staticmethod
    def _require_experiment_id(payload: Any) -> dict[str, Any]:
        if not isinstance(payload, dict) or not payload.get("experiment_id"):
            raise ApiError("No experiment ID returned from the server")
        return payload

    async def _submit(self, path: str, form: dict[str, Any]) -> dict[str, Any]:
        payload = await self._call("POST", path, data=_form(**form))
        return self._require_experiment_id(payload)

    async def automl_train(self, form: dict[str, Any]) -> dict[str, Any]:
        """Submit an AutoML training run; the result carries ``experiment_id``."""
        return await self._submit("/training/automl/", form)

    async def custom_train(self, form: dict[str, Any]) -> dict[str, Any]:
        """Submit a single-algorithm training run."""
        return await self._submit("/training/custom-train/", form)

    async def check_status(self, experiment_id: str) -> dict[str, Any]:
        return await self._call("GET", f"/training/check-status/{experiment_id}")

    async def get_experiment_results(self, experiment_id: str) -> dict[str, Any]:
        """Fetch the full result payload.

        A 404 means the service has not registered the run yet and is reported
        as a ``processing`` placeholder.
        """
        response = await self._request(
            "GET", f"/experiments/experiment-results/{experiment_id}"
        )
        if response.status_code == 404:
            return {
                "status": "processing",
                "experiment_id": experiment_id,
                "message": "Waiting for experiment to start...",
            }
        return unwrap_payload(self._parse(response))

    async def list_experiments(self) -> list[dict[str, Any]]:
        payload = await self._call("GET", "/experiments/list-experiments/")
        return payload if isinstance(payload, list) else payload.get("experiments", [])

    async def delete_experiment(self, experiment_id: str) -> dict[str, Any]:
        return await self._call(
            "DELETE", f"/experiments/delete-experiment/{experiment_id}"
        )

    async def tune_model(
        self, experiment_id: str, hyperparameters: dict[str, Any]
    ) -> dict[str, Any]:
        """Retrain an experiment with new hyperparameters as a new experiment."""
        payload = await self._call(
            "POST",
            "/experiments/tune-model/",
            json_body={
                "experiment_id": experiment_id,
                "new_hyperparameters": hyperparameters,
            },
        )
        return self._require_experiment_id(payload)

    # Comparison endpoints

    async def compare_experiments(
        self, experiment_ids: list[str], task_type: str | None = None
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"experiment_ids": list(experiment_ids)}
        if task_type:
            body["task_type"] = task_type
        payload = await self._call("POST", "/comparisons/compare/", json_body=body)
        if not isinstance(payload, dict):
            raise ApiError("Invalid response format from experiment comparison")
        return payload

    async def save_comparison(
        self, name: str, experiment_ids: list[str]
    ) -> dict[str, Any]:
        return await self._call(
            "POST",
            "/comparisons/save/",
            json_body={"name": name, "experiment_ids": list(experiment_ids)},
        )

    async def list_comparisons(self) -> list[dict[str, Any]]:
        payload = await self._call("GET", "/comparisons/list/")
        return payload if isinstance(payload, list) else payload.get("comparisons", [])

    async def delete_comparison(self, comparison_id: str) -> dict[str, Any]:
        return await self._call("DELETE", f"/comparisons/delete/{comparison_id}")

    # Prediction endpoints

    async def prediction_schema(self, experiment_id: str) -> dict[str, Any]:
        return await self._call("GET", f"/prediction/schema/{experiment_id}")

    async def predict_manual(
        self, experiment_id: str, input_values: dict[str, Any]
    ) -> dict[str, Any]:
        return await self._call(
            "POST",
            "/prediction/predict-manual/",
            json_body={"experiment_id": experiment_id, "input_values": input_values},
        )

    async def predict_csv(self, experiment_id: str, path: str | Path) -> dict[str, Any]:
        file_path = Path(path)
        with open(file_path, "rb") as fh:
            response = await self._request(
                "POST",
                "/prediction/predict-csv/",
                data=_form(experiment_id=experiment_id),
                files={"file": (file_path.name, fh, "text/csv")},
            )
        body = self._parse(response)
        # ``mode`` sits beside ``data`` in this endpoint's envelope
        result = unwrap_payload(body)
        if isinstance(body, dict) and isinstance(result, dict) and "mode" not in result:
            result = {**result, "mode": body.get("mode")}
        return result
