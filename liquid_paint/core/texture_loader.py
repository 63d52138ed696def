# -*- coding: utf-8 -*-
"""
纹理加载器

在后台线程中加载纹理图像，渲染循环每帧轮询一次完成状态
加载完成前纹理层被跳过，完成后无需重启动画即可生效
"""

import os
import cv2
import numpy as np
import logging
from concurrent.futures import ThreadPoolExecutor, Future
from typing import Optional
from PIL import Image


def load_texture(image_path: str) -> np.ndarray:
    """
    加载纹理为 RGB 浮点数组

    Args:
        image_path (str): 图像路径

    Returns:
        np.ndarray: (H, W, 3) float32 [0,1]

    Raises:
        FileNotFoundError: 文件不存在
        ValueError: 图像无法解码
    """
    if not os.path.exists(image_path):
        raise FileNotFoundError(f"Texture file not found: {image_path}")

    image = cv2.imread(image_path, cv2.IMREAD_COLOR)
    if image is not None:
        image = cv2.cvtColor(image, cv2.COLOR_BGR2RGB)
    else:
        # OpenCV 无法解码时尝试 PIL
        try:
            with Image.open(image_path) as pil_image:
                image = np.array(pil_image.convert('RGB'))
        except OSError as e:
            raise ValueError(f"Cannot decode texture {image_path}: {e}") from e

    if image.size == 0:
        raise ValueError(f"Texture {image_path} is empty")
    return image.astype(np.float32) / 255.0


class TextureLoader:
    """
    异步纹理加载器

    状态：未请求 -> 加载中 -> 就绪 / 失败
    """

    def __init__(self, image_path: Optional[str] = None,
                 executor: Optional[ThreadPoolExecutor] = None):
        """
        初始化纹理加载器

        Args:
            image_path (str, optional): 纹理路径，为空则不加载
            executor (ThreadPoolExecutor, optional): 共享的线程池
        """
        self.logger = logging.getLogger(__name__)
        self.image_path = image_path
        self._executor = executor
        self._owns_executor = executor is None
        self._future: Optional[Future] = None
        self._image: Optional[np.ndarray] = None
        self._failed = False

    def start(self):
        """提交后台加载任务（重复调用无效）"""
        if not self.image_path or self._future is not None or self.ready or self._failed:
            return
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix='texture')
        self.logger.info(f"Loading texture: {self.image_path}")
        self._future = self._executor.submit(load_texture, self.image_path)

    def poll(self) -> Optional[np.ndarray]:
        """
        每帧调用一次，返回已就绪的纹理

        Returns:
            Optional[np.ndarray]: 纹理；未就绪或失败时为 None
        """
        if self._image is not None or self._failed or self._future is None:
            return self._image
        if not self._future.done():
            return None

        future, self._future = self._future, None
        try:
            self._image = future.result()
            h, w = self._image.shape[:2]
            self.logger.info(f"Texture ready: {w}x{h}")
        except (OSError, ValueError) as e:
            self._failed = True
            self.logger.warning(f"Texture load failed, texture pass disabled: {e}")
        return self._image

    @property
    def ready(self) -> bool:
        return self._image is not None

    @property
    def failed(self) -> bool:
        return self._failed

    @property
    def image(self) -> Optional[np.ndarray]:
        return self._image

    def shutdown(self):
        """取消未完成的加载并释放线程池"""
        if self._future is not None:
            self._future.cancel()
            self._future = None
        if self._owns_executor and self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None
