"""Tests for DisplacementCodec."""

import pytest
import numpy as np
import tempfile
from pathlib import Path

from lensdisp.codecs import DisplacementCodec


class TestDisplacementCodec:
    @pytest.fixture
    def sample_data(self):
        H, W = 24, 32
        return {
            "displacement": (np.random.randn(H, W, 4) * 0.01).astype(np.float32),
            "coverage": np.random.rand(H, W) > 0.1,
            "params": {"k1": np.float64(0.1), "width": np.int64(32), "dtype": "float32"},
            "meta": {"sample_id": "test123"},
        }

    def test_encode_decode(self, sample_data):
        encoded = DisplacementCodec.encode(**sample_data)
        decoded = DisplacementCodec.decode(encoded)

        assert np.array_equal(decoded["displacement"], sample_data["displacement"])
        assert np.array_equal(decoded["coverage"], sample_data["coverage"])
        assert decoded["params"]["k1"] == 0.1
        assert isinstance(decoded["params"]["width"], int)
        assert decoded["meta"]["sample_id"] == "test123"
        assert decoded["version"] == DisplacementCodec.VERSION

    def test_decoded_params_are_plain_python(self, sample_data):
        encoded = DisplacementCodec.encode(**sample_data)
        decoded = DisplacementCodec.decode(encoded)

        assert type(decoded["params"]["k1"]) is float
        assert type(decoded["params"]["width"]) is int
        decoded["params"]["k1"] = 0.5
        assert encoded["params"]["k1"] == 0.1

    def test_encode_minimal(self):
        displacement = np.zeros((8, 8, 4), dtype=np.float64)
        decoded = DisplacementCodec.decode(DisplacementCodec.encode(displacement))

        assert decoded["displacement"].dtype == np.float32
        assert "coverage" not in decoded
        assert "params" not in decoded

    def test_compress(self, sample_data):
        encoded = DisplacementCodec.encode(compress=True, **sample_data)
        assert encoded["displacement"].dtype == np.float16

        decoded = DisplacementCodec.decode(encoded)
        assert np.allclose(decoded["displacement"], sample_data["displacement"], atol=1e-4)

    def test_rejects_wrong_shape(self):
        with pytest.raises(ValueError):
            DisplacementCodec.encode(np.zeros((8, 8, 2), dtype=np.float32))

    def test_save_load(self, sample_data):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "map.npy"
            DisplacementCodec.save(path, **sample_data)

            loaded = DisplacementCodec.load(path)

            assert np.array_equal(loaded["displacement"], sample_data["displacement"])
            assert loaded["params"]["dtype"] == "float32"

    def test_preview(self):
        displacement = np.zeros((4, 4, 4), dtype=np.float32)
        displacement[0, 0] = [0.1, -0.1, 0.0, 0.1]

        rgb = DisplacementCodec.to_preview(displacement)

        assert rgb.shape == (4, 4, 3)
        assert rgb.dtype == np.uint8
        assert rgb[0, 0, :2].tolist() == [255, 0]
        assert rgb[0, 0, 2] >= 254
        assert rgb[1, 1].tolist() == [127, 127, 0]

    def test_preview_zero_map(self):
        rgb = DisplacementCodec.to_preview(np.zeros((2, 2, 4), dtype=np.float32))
        assert (rgb[..., :2] == 127).all()
        assert (rgb[..., 2] == 0).all()
