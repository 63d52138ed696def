# -*- coding: utf-8 -*-
"""
确定性随机数源

mulberry32 生成器：给定32位整数种子，产生可复现的 [0,1) 浮点序列
所有混合运算均为32位整数运算，保证跨平台逐位一致
"""

MASK32 = 0xFFFFFFFF
GOLDEN_INCREMENT = 0x6D2B79F5
TWO_POW_32 = 4294967296.0


def _imul(a: int, b: int) -> int:
    """32位整数乘法（取低32位）"""
    return (a * b) & MASK32


class RandomSource:
    """
    可复现的伪随机数源

    同一种子在任何平台上产生相同的序列
    """

    def __init__(self, seed: int):
        """
        初始化随机数源

        Args:
            seed (int): 32位整数种子
        """
        self.seed = seed & MASK32
        self._state = self.seed

    def random(self) -> float:
        """
        产生下一个 [0,1) 浮点数

        Returns:
            float: 随机数
        """
        self._state = (self._state + GOLDEN_INCREMENT) & MASK32
        a = self._state
        t = _imul(a ^ (a >> 15), 1 | a)
        t = ((t + _imul(t ^ (t >> 7), 61 | t)) & MASK32) ^ t
        return ((t ^ (t >> 14)) & MASK32) / TWO_POW_32

    def __call__(self) -> float:
        return self.random()

    def uniform(self, low: float, high: float) -> float:
        """[low, high) 区间的均匀分布"""
        return low + (high - low) * self.random()

    def choice(self, items):
        """按序列下标等概率选择一个元素"""
        return items[int(self.random() * len(items))]

    def reset(self):
        """回到种子初始状态"""
        self._state = self.seed
