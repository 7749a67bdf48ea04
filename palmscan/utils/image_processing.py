import base64
import binascii
import logging
from pathlib import Path
from typing import Union
from PIL import Image
import torch
from torchvision import transforms
from torchvision.transforms import InterpolationMode
from pillow_heif import register_heif_opener
from io import BytesIO
from .exceptions import ImageProcessingError
from palmscan.config import MODEL_INPUT_SIZE, FILTER_SIZE

# Register the HEIF/HEIC opener for phone uploads
register_heif_opener()

ImageInput = Union[bytes, str, Path, Image.Image]

DATA_URL_PREFIX = 'data:'


def _normalize(tensor: torch.Tensor) -> torch.Tensor:
    # [0, 255] -> [-1, 1], the range the classifier was trained on
    return tensor.float() / 127.5 - 1


class ImageProcessor:
    def __init__(self, input_size: int = MODEL_INPUT_SIZE, sample_size: int = FILTER_SIZE):
        self.logger = logging.getLogger(__name__)

        self.sample_transform = transforms.Compose([
            transforms.Resize((sample_size, sample_size), interpolation=InterpolationMode.NEAREST),
            transforms.PILToTensor(),
        ])

        self.model_transform = transforms.Compose([
            transforms.Resize((input_size, input_size), interpolation=InterpolationMode.NEAREST),
            transforms.PILToTensor(),
            transforms.Lambda(_normalize),
        ])

    def _decode_data_url(self, data_url: str) -> bytes:
        """
        Decode a base64 ``data:`` URL as produced by a camera screenshot

        Raises:
            ValueError: if the URL is not base64 encoded or is malformed
        """
        header, sep, payload = data_url.partition(',')
        if not sep or not header.endswith(';base64'):
            raise ValueError("Only base64 data URLs are supported")
        try:
            return base64.b64decode(payload, validate=True)
        except binascii.Error as e:
            raise ValueError(f"Malformed base64 payload: {e}")

    def _convert_to_pil(self, image_input: ImageInput) -> Image.Image:
        """
        Convert the input to a PIL Image

        Args:
            image_input: input in one of the formats:
                - bytes: raw image bytes
                - str: ``data:`` URL or file path
                - Path: file path
                - Image.Image: PIL image

        Returns:
            Image.Image: RGB PIL image

        Raises:
            FileNotFoundError: if the file does not exist
            ValueError: on an unsupported input type
        """
        try:
            if isinstance(image_input, bytes):
                return Image.open(BytesIO(image_input)).convert('RGB')

            elif isinstance(image_input, str) and image_input.startswith(DATA_URL_PREFIX):
                return Image.open(BytesIO(self._decode_data_url(image_input))).convert('RGB')

            elif isinstance(image_input, (str, Path)):
                path = Path(image_input)
                if not path.exists():
                    raise FileNotFoundError(f"File not found: {path}")
                return Image.open(path).convert('RGB')

            elif isinstance(image_input, Image.Image):
                return image_input.convert('RGB')

            else:
                raise ValueError(f"Unsupported input type: {type(image_input)}")

        except Exception as e:
            self.logger.error(f"Image conversion failed: {str(e)}")
            raise

    def load_image(self, image_input: ImageInput) -> Image.Image:
        """
        Decode the input into an RGB image

        Raises:
            ImageProcessingError: if the input cannot be decoded
        """
        try:
            img = self._convert_to_pil(image_input)
            self.logger.debug(f"Decoded image size: {img.size}")
            return img
        except Exception as e:
            raise ImageProcessingError(f"Could not decode image: {str(e)}")

    def sample_pixels(self, img: Image.Image) -> torch.Tensor:
        """Downsampled copy used for color statistics, uint8 tensor (C, H, W)"""
        return self.sample_transform(img)

    def process_image(self, image_input: ImageInput) -> torch.Tensor:
        """
        Prepare the input image for the classifier

        Args:
            image_input: any input accepted by ``load_image``

        Returns:
            torch.Tensor: normalized image tensor of shape (C, H, W) in [-1, 1]

        Raises:
            ImageProcessingError: on image processing errors
        """
        img = image_input if isinstance(image_input, Image.Image) else self.load_image(image_input)
        try:
            tensor = self.model_transform(img.convert('RGB'))
            self.logger.debug(f"Tensor shape: {tensor.shape}")
            return tensor

        except Exception as e:
            self.logger.error(f"Image processing failed: {str(e)}")
            raise ImageProcessingError(f"Could not process image: {str(e)}")
