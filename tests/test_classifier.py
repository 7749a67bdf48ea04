import pytest
import torch

from palmscan import ImageProcessor, PalmClassifier
from palmscan.config.settings import CLASS_NAMES_PATH, MODEL_INPUT_SIZE, NUM_CLASSES
from palmscan.models import rank_predictions, load_class_names

from conftest import FixedOutputModel, BrokenModel, UniformModel, make_classifier, solid_image, HEALTHY_PROBS, LEAF_GREEN

LABELS = [
    'potassium deficiency',
    'manganese deficiency',
    'magnesium deficiency',
    'black scorch',
    'leaf spots',
    'fusarium wilt',
    'leaf blight',
    'Parlatoria blanchardi (insect)',
    'healthy sample',
]


@pytest.fixture
def leaf_tensor():
    return ImageProcessor().process_image(solid_image(LEAF_GREEN))


def test_class_names_are_fixed_enumeration():
    names = load_class_names(CLASS_NAMES_PATH)
    assert len(names) == NUM_CLASSES
    assert names == LABELS


def test_wrong_number_of_class_names(tmp_path):
    path = tmp_path / 'class_names.txt'
    path.write_text("healthy sample\nblack scorch\n", encoding='utf-8')
    with pytest.raises(ValueError):
        load_class_names(path)


def test_rank_predictions_sorted_with_positional_labels():
    probs = [0.05, 0.30, 0.02, 0.40, 0.03, 0.10, 0.04, 0.01, 0.05]
    ranked = rank_predictions(probs, LABELS, top_k=3)

    assert [pred.class_name for pred in ranked] == ['black scorch', 'manganese deficiency', 'fusarium wilt']
    assert [pred.confidence for pred in ranked] == [0.40, 0.30, 0.10]
    for pred in ranked:
        assert probs[LABELS.index(pred.class_name)] == pred.confidence


def test_rank_predictions_strictly_descending():
    probs = [0.11, 0.09, 0.13, 0.12, 0.08, 0.14, 0.10, 0.15, 0.08]
    ranked = rank_predictions(probs, LABELS)
    confidences = [pred.confidence for pred in ranked]
    assert len(ranked) == 3
    assert all(a > b for a, b in zip(confidences, confidences[1:]))
    assert confidences[0] == max(probs)


def test_rank_predictions_length_mismatch():
    with pytest.raises(ValueError):
        rank_predictions([0.5, 0.5], LABELS)


def test_input_contract_nchw(leaf_tensor):
    model = FixedOutputModel(HEALTHY_PROBS)
    make_classifier(model).predict(leaf_tensor)
    assert model.last_input_shape == (1, 3, MODEL_INPUT_SIZE, MODEL_INPUT_SIZE)
    assert model.calls == 1


def test_input_contract_nhwc(leaf_tensor):
    model = FixedOutputModel(HEALTHY_PROBS)
    make_classifier(model, input_layout='nhwc').predict(leaf_tensor)
    assert model.last_input_shape == (1, MODEL_INPUT_SIZE, MODEL_INPUT_SIZE, 3)


def test_unknown_layout_rejected():
    with pytest.raises(ValueError):
        make_classifier(FixedOutputModel(HEALTHY_PROBS), input_layout='CHWN')


def test_inference_is_deterministic(leaf_tensor):
    classifier = make_classifier(FixedOutputModel(HEALTHY_PROBS))
    first = classifier.probabilities(leaf_tensor)
    second = classifier.probabilities(leaf_tensor)
    assert first == second
    assert sum(first) == pytest.approx(1.0)


def test_predict_top_result(leaf_tensor):
    predictions = make_classifier(FixedOutputModel(HEALTHY_PROBS)).predict(leaf_tensor, top_k=3)
    assert len(predictions) == 3
    assert predictions[0].class_name == 'healthy sample'
    assert predictions[0].confidence == pytest.approx(0.92)


def test_softmax_for_logit_models(leaf_tensor):
    logits = [0.0] * 8 + [5.0]
    classifier = make_classifier(FixedOutputModel(logits), apply_softmax=True)
    probs = classifier.probabilities(leaf_tensor)
    assert sum(probs) == pytest.approx(1.0)
    assert probs.index(max(probs)) == 8


def test_wrong_output_length(leaf_tensor):
    classifier = make_classifier(FixedOutputModel([0.5, 0.5]))
    with pytest.raises(ValueError):
        classifier.predict(leaf_tensor)


def test_model_errors_propagate(leaf_tensor):
    with pytest.raises(RuntimeError):
        make_classifier(BrokenModel()).predict(leaf_tensor)


def test_torchscript_artifact_is_loaded(tmp_path, leaf_tensor):
    path = tmp_path / 'palm_classifier.pt'
    torch.jit.save(torch.jit.script(UniformModel()), str(path))

    classifier = PalmClassifier(class_names_path=CLASS_NAMES_PATH, model_path=path, device='cpu')
    probs = classifier.probabilities(leaf_tensor)
    assert len(probs) == NUM_CLASSES
    assert probs == pytest.approx([1 / 9] * 9)


def test_missing_artifact(tmp_path):
    with pytest.raises(FileNotFoundError):
        PalmClassifier(class_names_path=CLASS_NAMES_PATH, model_path=tmp_path / 'missing.pt')


def test_model_or_path_required():
    with pytest.raises(ValueError):
        PalmClassifier(class_names_path=CLASS_NAMES_PATH)
