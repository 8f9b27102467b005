"""CSV Configuration Generator: Generate lens sample configs from YAML spec."""

import yaml
import csv
import numpy as np
from pathlib import Path
from dataclasses import dataclass
from typing import Dict, Any, List, Optional, Union, Tuple
import hashlib

from ..core import CameraMatrix, DisplacementParams, DistortionCoefficients, OutputTransform


@dataclass
class SamplingSpec:
    """Specification for parameter sampling."""
    distribution: str = "uniform"  # "uniform" | "normal" | "fixed"
    min_val: float = 0.0
    max_val: float = 1.0
    mean: float = 0.5
    std: float = 0.1
    value: Optional[float] = None  # for "fixed"

    def sample(self, rng: np.random.Generator) -> float:
        if self.distribution == "fixed":
            return self.value if self.value is not None else self.mean
        elif self.distribution == "uniform":
            return float(rng.uniform(self.min_val, self.max_val))
        elif self.distribution == "normal":
            val = float(rng.normal(self.mean, self.std))
            return float(np.clip(val, self.min_val, self.max_val))
        else:
            raise ValueError(f"Unknown distribution: {self.distribution}")

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SamplingSpec":
        return cls(
            distribution=d.get("distribution", "uniform"),
            min_val=d.get("min", 0.0),
            max_val=d.get("max", 1.0),
            mean=d.get("mean", (d.get("min", 0.0) + d.get("max", 1.0)) / 2),
            std=d.get("std", 0.1),
            value=d.get("value"),
        )


@dataclass
class DatasetSpec:
    """Specification for a lens dataset."""
    name: str
    train_samples: int = 100
    test_samples: int = 10


@dataclass
class OutputSpec:
    """Specification for output paths."""
    root: str
    map_subdir: str = "maps"
    preview_subdir: str = "previews"


@dataclass
class RenderSpec:
    """Fixed settings shared by every generated map."""
    width: int = 512
    height: int = 512
    grid_subdivision_x: int = 32
    grid_subdivision_y: int = 32
    output_multiply: float = 1.0
    output_add: float = 0.0
    clear_value: float = 0.0
    dtype: str = "float32"


class CSVGenerator:
    """Generate CSV configuration files for displacement map generation.

    YAML config format:
    ```yaml
    dataset:
      name: wide_angle
      train_samples: 1000
      test_samples: 100

    output:
      root: /path/to/output
      map_subdir: maps
      preview_subdir: previews

    render:
      width: 512
      height: 512
      grid_subdivision_x: 32
      grid_subdivision_y: 32
      output_multiply: 1.0
      output_add: 0.0

    params:
      k1:
        distribution: uniform
        min: -0.3
        max: 0.3
      k2:
        distribution: normal
        mean: 0.0
        std: 0.05
        min: -0.1
        max: 0.1
      k3:
        distribution: fixed
        value: 0.0

    generation:
      seed: 42
    ```
    """

    PARAM_COLUMNS = [
        "k1",
        "k2",
        "k3",
        "p1",
        "p2",
        "horizontal_fov",
        "focal_jitter",
        "center_x_jitter",
        "center_y_jitter",
    ]

    DEFAULT_SPECS = {
        "k1": {"distribution": "uniform", "min": -0.3, "max": 0.3},
        "k2": {"distribution": "uniform", "min": -0.1, "max": 0.1},
        "k3": {"distribution": "fixed", "value": 0.0},
        "p1": {"distribution": "uniform", "min": -0.01, "max": 0.01},
        "p2": {"distribution": "uniform", "min": -0.01, "max": 0.01},
        "horizontal_fov": {"distribution": "uniform", "min": 60.0, "max": 90.0},
        "focal_jitter": {"distribution": "fixed", "value": 1.0},
        "center_x_jitter": {"distribution": "fixed", "value": 0.0},
        "center_y_jitter": {"distribution": "fixed", "value": 0.0},
    }

    PATH_COLUMNS = ["sample_id", "split", "output_map", "output_preview"]

    def __init__(self, config_path: Union[str, Path]):
        """Initialize generator from YAML config."""
        self.config_path = Path(config_path)
        with open(config_path) as f:
            self.config = yaml.safe_load(f)

        dataset_cfg = self.config["dataset"]
        self.dataset = DatasetSpec(
            name=dataset_cfg["name"],
            train_samples=int(dataset_cfg.get("train_samples", 100)),
            test_samples=int(dataset_cfg.get("test_samples", 10)),
        )

        output_cfg = self.config.get("output", {})
        self.output = OutputSpec(
            root=output_cfg.get("root", "."),
            map_subdir=output_cfg.get("map_subdir", "maps"),
            preview_subdir=output_cfg.get("preview_subdir", "previews"),
        )

        render_cfg = self.config.get("render", {})
        self.render = RenderSpec(**{k: v for k, v in render_cfg.items() if k in RenderSpec.__dataclass_fields__})

        self.param_specs = {}
        for param in self.PARAM_COLUMNS:
            if "params" in self.config and param in self.config["params"]:
                self.param_specs[param] = SamplingSpec.from_dict(self.config["params"][param])
            else:
                self.param_specs[param] = SamplingSpec.from_dict(self.DEFAULT_SPECS.get(param, {}))

        gen_cfg = self.config.get("generation", {})
        self.seed = gen_cfg.get("seed", 42)

    def _sample_lens(self, rng: np.random.Generator) -> Dict[str, float]:
        """Sample one value per parameter column."""
        lens = {}
        for param in self.PARAM_COLUMNS:
            spec = self.param_specs[param]
            if spec.distribution == "fixed":
                lens[param] = spec.value if spec.value is not None else spec.mean
            else:
                lens[param] = spec.sample(rng)
        return lens

    def build_params(self, lens: Dict[str, float]) -> DisplacementParams:
        """Turn sampled lens values into generation parameters."""
        r = self.render
        undistorted = CameraMatrix.from_fov(float(lens["horizontal_fov"]), r.width / r.height)
        focal_scale = float(lens["focal_jitter"])
        distorted = CameraMatrix(
            fx=undistorted.fx * focal_scale,
            fy=undistorted.fy * focal_scale,
            cx=undistorted.cx + float(lens["center_x_jitter"]),
            cy=undistorted.cy + float(lens["center_y_jitter"]),
        )
        return DisplacementParams(
            coefficients=DistortionCoefficients.from_dict(lens),
            undistorted_matrix=undistorted,
            distorted_matrix=distorted,
            width=r.width,
            height=r.height,
            output_transform=OutputTransform(r.output_multiply, r.output_add),
            grid_subdivision_x=r.grid_subdivision_x,
            grid_subdivision_y=r.grid_subdivision_y,
            clear_value=r.clear_value,
            dtype=r.dtype,
        )

    def _generate_output_paths(self, sample_id: str, split: str) -> Dict[str, str]:
        """Generate output paths for a sample."""
        return {
            "map_path": f"{self.output.map_subdir}/{split}/{sample_id}.npy",
            "preview_path": f"{self.output.preview_subdir}/{split}/{sample_id}.png",
        }

    def columns(self) -> List[str]:
        derived = [k for k in DisplacementParams().to_dict() if k not in self.PARAM_COLUMNS]
        return self.PATH_COLUMNS + self.PARAM_COLUMNS + derived

    def generate(self, output_csv: Union[str, Path], split: str = "train") -> int:
        """Generate CSV configuration file.

        Args:
            output_csv: path to output CSV
            split: "train" or "test"

        Returns:
            number of samples generated
        """
        rng = np.random.default_rng(self.seed if split == "train" else self.seed + 1)
        num_samples = self.dataset.train_samples if split == "train" else self.dataset.test_samples

        output_csv = Path(output_csv)
        output_csv.parent.mkdir(parents=True, exist_ok=True)

        columns = self.columns()

        with open(output_csv, "w", newline="") as f:
            writer = csv.DictWriter(f, fieldnames=columns)
            writer.writeheader()

            for i in range(num_samples):
                lens = self._sample_lens(rng)
                params = self.build_params(lens).validate()

                sample_id = hashlib.md5(f"{self.dataset.name}_{split}_{i}".encode()).hexdigest()[:12]
                output_paths = self._generate_output_paths(sample_id, split)

                row = {
                    "sample_id": sample_id,
                    "split": split,
                    "output_map": output_paths["map_path"],
                    "output_preview": output_paths["preview_path"],
                }
                row.update(lens)
                row.update(params.to_dict())

                writer.writerow(row)

        return num_samples

    def generate_all(self, output_dir: Union[str, Path]) -> Tuple[int, int]:
        """Generate CSV files for both train and test splits.

        Args:
            output_dir: directory to save CSV files

        Returns:
            (train_count, test_count)
        """
        output_dir = Path(output_dir)
        train_csv = output_dir / f"{self.dataset.name}_train.csv"
        test_csv = output_dir / f"{self.dataset.name}_test.csv"

        train_count = self.generate(train_csv, "train")
        test_count = self.generate(test_csv, "test")

        return train_count, test_count
