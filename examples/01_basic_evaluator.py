from sensible_params import Parameters

ps = (
    Parameters()
    .add("c", formula="a + b")
    .add("a", value=2.0, min=0.0, max=10.0)
    .add("b", kind="constant", value=3.0)
)

ps.validate()
ps.resolve()
print(ps)

# free vector [a] -> [a, b, c] in collection order
f = ps.compile()
print(f)
print(f([5.0]))

ps.update_from_vector(f([5.0]))
print(ps)
