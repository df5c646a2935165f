"""
Tests for the live app's training and model activation actions.
"""

import pytest

from teach_cam import db, main
from teach_cam.detection import TemplateDetector
from teach_cam.mapping import Rect
from teach_cam.pipeline import DetectionState
from teach_cam.templates import LabeledSample


@pytest.fixture
def db_path(tmp_path):
    path = str(tmp_path / "catalog.db")
    db.init_db(path)
    return path


@pytest.fixture
def ui():
    return main.UiState(detection_state=DetectionState())


def answer(monkeypatch, text):
    monkeypatch.setattr("builtins.input", lambda prompt="": text)


class TestTrainAndSave:
    def test_saves_and_activates(self, monkeypatch, ui, db_path, scene_samples):
        answer(monkeypatch, "kitchen")
        ui.samples = list(scene_samples)
        detector = TemplateDetector()

        main.train_and_save(ui, detector, db_path)

        assert ui.active_model == "kitchen"
        assert detector.is_trained()
        conn = db.connect(db_path)
        try:
            assert db.get_active_model(conn).name == "kitchen"
        finally:
            conn.close()

    def test_duplicate_name_clears_active_model(self, monkeypatch, ui, db_path, scene_samples):
        """Templates that could not be saved are not shown as the saved model."""
        conn = db.connect(db_path)
        try:
            db.save_model(conn, "kitchen", scene_samples[:1])
        finally:
            conn.close()

        answer(monkeypatch, "kitchen")
        ui.active_model = "kitchen"
        ui.samples = list(scene_samples)
        main.train_and_save(ui, TemplateDetector(), db_path)

        assert ui.active_model is None
        assert "already exists" in ui.message

    def test_failed_training_clears_active_model(self, monkeypatch, ui, db_path, scene_png, scene_samples):
        detector = TemplateDetector()
        detector.train(scene_samples)
        answer(monkeypatch, "tiny")
        ui.active_model = "kitchen"
        ui.samples = [LabeledSample("dot", scene_png, Rect(0, 0, 4, 4))]

        main.train_and_save(ui, detector, db_path)

        assert ui.active_model is None
        assert not detector.is_trained()
        assert ui.message.startswith("Training failed")

    def test_no_samples(self, ui, db_path):
        main.train_and_save(ui, TemplateDetector(), db_path)
        assert ui.message == "No samples to train"


class TestActivateModel:
    def test_activates_saved_model(self, ui, db_path, scene_samples):
        conn = db.connect(db_path)
        try:
            model_id = db.save_model(conn, "kitchen", scene_samples, activate=False)
        finally:
            conn.close()

        detector = TemplateDetector()
        assert main.activate_model(ui, detector, db_path, model_id)
        assert ui.active_model == "kitchen"
        assert detector.store.template_count() == 2

    def test_missing_model(self, ui, db_path):
        ui.active_model = "kitchen"
        assert not main.activate_model(ui, TemplateDetector(), db_path, 42)
        assert ui.active_model == "kitchen"
