"""Bundled sample programs with the output each one is expected to print."""

from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Tuple


@dataclass(frozen=True)
class Demo:
    name: str
    title: str
    source: str
    expected: Tuple[int, ...]


_DEMOS: List[Demo] = [
    Demo(
        name="arithmetic",
        title="Basic arithmetic",
        source=(
            "x = 5\n"
            "y = 10\n"
            "z = x + y\n"
            "print(z)\n"
            "z = z * 2\n"
            "print(z)\n"
        ),
        expected=(15, 30),
    ),
    Demo(
        name="sum",
        title="Sum of N = 10",
        source=(
            "N = 10\n"
            "sum = 0\n"
            "i = 1\n"
            "while i <= N:\n"
            "    sum = sum + i\n"
            "    i = i + 1\n"
            "print(sum)\n"
        ),
        expected=(55,),
    ),
    Demo(
        name="factorial",
        title="Factorial of N=5",
        source=(
            "N = 5\n"
            "fact = 1\n"
            "i = 1\n"
            "while i <= N:\n"
            "    fact = fact * i\n"
            "    i = i + 1\n"
            "print(fact)\n"
        ),
        expected=(120,),
    ),
    Demo(
        name="gcd",
        title="GCD(48,18)",
        source=(
            "a = 48\n"
            "b = 18\n"
            "while b != 0:\n"
            "    temp = b\n"
            "    b = a % b\n"
            "    a = temp\n"
            "print(a)\n"
        ),
        expected=(6,),
    ),
    Demo(
        name="reverse",
        title="Reverse Number 1234",
        source=(
            "n = 1234\n"
            "rev = 0\n"
            "while n > 0:\n"
            "    digit = n % 10\n"
            "    rev = rev * 10 + digit\n"
            "    n = n / 10\n"
            "print(rev)\n"
        ),
        expected=(4321,),
    ),
    Demo(
        name="prime",
        title="Check if 13 is Prime",
        source=(
            "N = 13\n"
            "i = 2\n"
            "flag = 1\n"
            "while i < N:\n"
            "    if N % i == 0:\n"
            "        flag = 0\n"
            "    i = i + 1\n"
            "if flag == 1:\n"
            "    print(1)\n"
            "else:\n"
            "    print(0)\n"
        ),
        expected=(1,),
    ),
    Demo(
        name="palindrome",
        title="Palindrome check of 121",
        source=(
            "n = 121\n"
            "temp = n\n"
            "rev = 0\n"
            "while temp > 0:\n"
            "    digit = temp % 10\n"
            "    rev = rev * 10 + digit\n"
            "    temp = temp / 10\n"
            "if rev == n:\n"
            "    print(1)\n"
            "else:\n"
            "    print(0)\n"
        ),
        expected=(1,),
    ),
    Demo(
        name="largest-digit",
        title="Largest digit in 3947",
        source=(
            "n = 3947\n"
            "largest = 0\n"
            "while n > 0:\n"
            "    digit = n % 10\n"
            "    if digit > largest:\n"
            "        largest = digit\n"
            "    n = n / 10\n"
            "print(largest)\n"
        ),
        expected=(9,),
    ),
    Demo(
        name="digit-sum",
        title="Sum of digits in 1234",
        source=(
            "n = 1234\n"
            "sum = 0\n"
            "while n > 0:\n"
            "    digit = n % 10\n"
            "    sum = sum + digit\n"
            "    n = n / 10\n"
            "print(sum)\n"
        ),
        expected=(10,),
    ),
    Demo(
        name="table",
        title="Multiplication table of 5",
        source=(
            "N = 5\n"
            "i = 1\n"
            "while i <= 10:\n"
            "    print(N * i)\n"
            "    i = i + 1\n"
        ),
        expected=(5, 10, 15, 20, 25, 30, 35, 40, 45, 50),
    ),
    Demo(
        name="fibonacci",
        title="10th Fibonacci number",
        source=(
            "N = 10\n"
            "if N == 0:\n"
            "    print(0)\n"
            "else:\n"
            "    a = 0\n"
            "    b = 1\n"
            "    i = 2\n"
            "    while i <= N:\n"
            "        c = a + b\n"
            "        a = b\n"
            "        b = c\n"
            "        i = i + 1\n"
            "    print(b)\n"
        ),
        expected=(55,),
    ),
]

DEMOS: Dict[str, Demo] = {demo.name: demo for demo in _DEMOS}


def demo_names() -> List[str]:
    return [demo.name for demo in _DEMOS]


def get_demo(name: str) -> Demo:
    try:
        return DEMOS[name]
    except KeyError:
        raise KeyError(f"Unknown demo '{name}' (available: {', '.join(demo_names())})") from None
