from .palm_classifier import PalmClassifier, Prediction, rank_predictions, load_class_names

__all__ = ['PalmClassifier', 'Prediction', 'rank_predictions', 'load_class_names']
