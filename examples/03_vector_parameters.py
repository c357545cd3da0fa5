from sensible_params import Constant, Derived, Free, Parameters

# Three channels sharing a gain, each with its own offset.
ps = Parameters(
    Free("offset", value=[0.0, 0.0, 0.0], min=[-1.0, -1.0, -1.0], max=[1.0, 1.0, 1.0]),
    Free("gain", value=1.0, min=0.0),
    Constant("raw", value=[0.5, 1.0, 1.5]),
    Derived("signal", formula="gain * raw + offset"),
)
ps.resolve()
f = ps.compile()

# signal takes its three-element shape from its operands
print("len(signal):", len(ps["signal"]))

print("free layout:", f.free_layout)
print("output layout:", f.layout)
print(f.as_dict([0.1, 0.2, 0.3, 2.0]))
