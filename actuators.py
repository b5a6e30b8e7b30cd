# actuators.py
"""
FILE: actuators.py
DESCRIPTION:
  Fan actuator. On the board this drives a PWM channel; here the duty cycle
  is only tracked and logged.
"""


class PWMFan:
    def __init__(self, duty_resolution_bits=10):
        self.max_duty = 1 << duty_resolution_bits
        self.percent = 0
        self.duty = 0

    def turn_to_percent(self, percent) -> int:
        percent = max(0, min(100, int(percent)))
        self.percent = percent
        self.duty = int(self.max_duty * (percent / 100.0))
        print(f"[FAN] Speed set to {percent}% (duty {self.duty}/{self.max_duty})")
        return percent

    def turn_off(self) -> None:
        self.turn_to_percent(0)
