"""Standard explicit Runge-Kutta tableaux."""

import numpy as np
from numpy.polynomial import polynomial as P
from varstep.core.tableau import ButcherTableau


def explicit_euler() -> ButcherTableau:
    """Forward Euler method (1st order)."""
    c = np.array([0.0])
    a = np.array([[0.0]])
    b = np.array([1.0])
    dense = np.array([[1.0]])
    return ButcherTableau(c=c, a=a, b=b, order=1, dense=dense)


def midpoint() -> ButcherTableau:
    """Explicit midpoint method (2nd order)."""
    c = np.array([0.0, 0.5])
    a = np.array([
        [0.0, 0.0],
        [0.5, 0.0],
    ])
    b = np.array([0.0, 1.0])
    # b_1(θ) = θ - θ², b_2(θ) = θ²
    dense = np.array([
        [1.0, -1.0],
        [0.0, 1.0],
    ])
    return ButcherTableau(c=c, a=a, b=b, order=2, dense=dense)


def heun() -> ButcherTableau:
    """Heun's method (2nd order)."""
    c = np.array([0.0, 1.0])
    a = np.array([
        [0.0, 0.0],
        [1.0, 0.0],
    ])
    b = np.array([0.5, 0.5])
    dense = np.array([
        [1.0, -0.5],
        [0.0, 0.5],
    ])
    return ButcherTableau(c=c, a=a, b=b, order=2, dense=dense)


def rk4() -> ButcherTableau:
    """Classic 4th-order Runge-Kutta method with 3rd-order dense output."""
    c = np.array([0.0, 0.5, 0.5, 1.0])
    a = np.array([
        [0.0, 0.0, 0.0, 0.0],
        [0.5, 0.0, 0.0, 0.0],
        [0.0, 0.5, 0.0, 0.0],
        [0.0, 0.0, 1.0, 0.0],
    ])
    b = np.array([1.0/6.0, 1.0/3.0, 1.0/3.0, 1.0/6.0])
    dense = np.array([
        [1.0, -1.5, 2.0/3.0],
        [0.0, 1.0, -2.0/3.0],
        [0.0, 1.0, -2.0/3.0],
        [0.0, -0.5, 2.0/3.0],
    ])
    return ButcherTableau(c=c, a=a, b=b, order=4, dense=dense)


def three_eighths() -> ButcherTableau:
    """Kutta's 3/8 rule (4th order) with 3rd-order dense output."""
    c = np.array([0.0, 1.0/3.0, 2.0/3.0, 1.0])
    a = np.array([
        [0.0, 0.0, 0.0, 0.0],
        [1.0/3.0, 0.0, 0.0, 0.0],
        [-1.0/3.0, 1.0, 0.0, 0.0],
        [1.0, -1.0, 1.0, 0.0],
    ])
    b = np.array([1.0/8.0, 3.0/8.0, 3.0/8.0, 1.0/8.0])
    dense = np.array([
        [1.0, -15.0/8.0, 1.0],
        [0.0, 15.0/8.0, -1.5],
        [0.0, 3.0/8.0, 0.0],
        [0.0, -3.0/8.0, 0.5],
    ])
    return ButcherTableau(c=c, a=a, b=b, order=4, dense=dense)


def dormand_prince54() -> ButcherTableau:
    """Dormand-Prince 5(4) embedded pair with 4th-order dense output.

    The last stage is evaluated at the accepted state, so its derivative is
    reused as the first stage of the next step.
    """
    c = np.array([0.0, 1.0/5.0, 3.0/10.0, 4.0/5.0, 8.0/9.0, 1.0, 1.0])
    a = np.array([
        [0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0],
        [1.0/5.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0],
        [3.0/40.0, 9.0/40.0, 0.0, 0.0, 0.0, 0.0, 0.0],
        [44.0/45.0, -56.0/15.0, 32.0/9.0, 0.0, 0.0, 0.0, 0.0],
        [19372.0/6561.0, -25360.0/2187.0, 64448.0/6561.0, -212.0/729.0, 0.0, 0.0, 0.0],
        [9017.0/3168.0, -355.0/33.0, 46732.0/5247.0, 49.0/176.0, -5103.0/18656.0, 0.0, 0.0],
        [35.0/384.0, 0.0, 500.0/1113.0, 125.0/192.0, -2187.0/6784.0, 11.0/84.0, 0.0],
    ])
    b = a[6].copy()
    error = np.array([
        71.0/57600.0, 0.0, -71.0/16695.0, 71.0/1920.0,
        -17253.0/339200.0, 22.0/525.0, -1.0/40.0,
    ])

    # Shampine's continuous extension
    d = np.array([
        -12715105075.0/11282082432.0, 0.0, 87487479700.0/32700410799.0,
        -10690763975.0/1880347072.0, 701980252875.0/199316789632.0,
        -1453857185.0/822651844.0, 69997945.0/29380423.0,
    ])
    first = np.zeros(7)
    first[0] = 1.0
    last = np.zeros(7)
    last[6] = 1.0
    v2 = first - b
    v3 = 2.0 * b - first - last
    dense = np.column_stack([first, v3 - v2 + d, -v3 - 2.0 * d, d])

    return ButcherTableau(c=c, a=a, b=b, order=5, dense=dense, error=error, fsal=True)


def higham_hall54() -> ButcherTableau:
    """Higham-Hall 5(4) embedded pair with 4th-order dense output."""
    c = np.array([0.0, 2.0/9.0, 1.0/3.0, 1.0/2.0, 3.0/5.0, 1.0, 1.0])
    a = np.array([
        [0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0],
        [2.0/9.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0],
        [1.0/12.0, 1.0/4.0, 0.0, 0.0, 0.0, 0.0, 0.0],
        [1.0/8.0, 0.0, 3.0/8.0, 0.0, 0.0, 0.0, 0.0],
        [91.0/500.0, -27.0/100.0, 78.0/125.0, 8.0/125.0, 0.0, 0.0, 0.0],
        [-11.0/20.0, 27.0/20.0, 12.0/5.0, -36.0/5.0, 5.0, 0.0, 0.0],
        [1.0/12.0, 0.0, 27.0/32.0, -4.0/3.0, 125.0/96.0, 5.0/48.0, 0.0],
    ])
    b = np.array([1.0/12.0, 0.0, 27.0/32.0, -4.0/3.0, 125.0/96.0, 5.0/48.0, 0.0])
    error = np.array([-1.0/20.0, 0.0, 81.0/160.0, -6.0/5.0, 25.0/32.0, 1.0/16.0, -1.0/10.0])
    dense = np.array([
        [1.0, -15.0/4.0, 16.0/3.0, -5.0/2.0],
        [0.0, 0.0, 0.0, 0.0],
        [0.0, 459.0/32.0, -243.0/8.0, 135.0/8.0],
        [0.0, -22.0, 152.0/3.0, -30.0],
        [0.0, 375.0/32.0, -625.0/24.0, 125.0/8.0],
        [0.0, -5.0/16.0, 5.0/12.0, 0.0],
        [0.0, 0.0, 0.0, 0.0],
    ])
    return ButcherTableau(c=c, a=a, b=b, order=5, dense=dense, error=error)


# second error estimator of Dormand-Prince 8(5,3), the 3rd-order one
DORMAND_PRINCE853_E2 = np.array([
    -364463.0/1920240.0, 0.0, 0.0, 0.0, 0.0,
    3399327.0/763840.0, 66578432.0/35198415.0, -1674902723.0/288716400.0,
    -74684743568175.0/176692375811392.0, -734375.0/4826304.0,
    171414593.0/851261400.0, 69869.0/3084480.0, 0.0,
])
DORMAND_PRINCE853_E2.setflags(write=False)


def dormand_prince853() -> ButcherTableau:
    """Dormand-Prince 8(5,3) pair with 7th-order dense output.

    The error weights are those of the 5th-order estimator; the integrator
    combines them with DORMAND_PRINCE853_E2. Dense output needs three more
    stages at θ = 1/10, 1/5 and 7/9 once a step is accepted.
    """
    s6 = np.sqrt(6.0)
    c = np.array([
        0.0, (12.0 - 2.0*s6)/135.0, (6.0 - s6)/45.0, (6.0 - s6)/30.0,
        (6.0 + s6)/30.0, 1.0/3.0, 1.0/4.0, 4.0/13.0, 127.0/195.0,
        3.0/5.0, 6.0/7.0, 1.0, 1.0,
    ])
    rows = [
        [],
        [(12.0 - 2.0*s6)/135.0],
        [(6.0 - s6)/180.0, (6.0 - s6)/60.0],
        [(6.0 - s6)/120.0, 0.0, (6.0 - s6)/40.0],
        [(462.0 + 107.0*s6)/3000.0, 0.0, (-402.0 - 197.0*s6)/1000.0, (168.0 + 73.0*s6)/375.0],
        [1.0/27.0, 0.0, 0.0, (16.0 + s6)/108.0, (16.0 - s6)/108.0],
        [19.0/512.0, 0.0, 0.0, (118.0 + 23.0*s6)/1024.0, (118.0 - 23.0*s6)/1024.0, -9.0/512.0],
        [13772.0/371293.0, 0.0, 0.0, (51544.0 + 4784.0*s6)/371293.0,
         (51544.0 - 4784.0*s6)/371293.0, -5688.0/371293.0, 3072.0/371293.0],
        [58656157643.0/93983540625.0, 0.0, 0.0,
         (-1324889724104.0 - 318801444819.0*s6)/626556937500.0,
         (-1324889724104.0 + 318801444819.0*s6)/626556937500.0,
         96044563816.0/3480871875.0, 5682451879168.0/281950621875.0,
         -165125654.0/3796875.0],
        [8909899.0/18653125.0, 0.0, 0.0,
         (-4521408.0 - 1137963.0*s6)/2937500.0,
         (-4521408.0 + 1137963.0*s6)/2937500.0,
         96663078.0/4553125.0, 2107245056.0/137915625.0,
         -4913652016.0/147609375.0, -78894270.0/3880452869.0],
        [-20401265806.0/21769653311.0, 0.0, 0.0,
         (354216.0 + 94326.0*s6)/112847.0,
         (354216.0 - 94326.0*s6)/112847.0,
         -43306765128.0/5313852383.0, -20866708358144.0/1126708119789.0,
         14886003438020.0/654632330667.0, 35290686222309375.0/14152473387134411.0,
         -1477884375.0/485066827.0],
        [39815761.0/17514443.0, 0.0, 0.0,
         (-3457480.0 - 960905.0*s6)/551636.0,
         (-3457480.0 + 960905.0*s6)/551636.0,
         -844554132.0/47026969.0, 8444996352.0/302158619.0,
         -2509602342.0/877790785.0, -28388795297996250.0/3199510091356783.0,
         226716250.0/18341897.0, 1371316744.0/2131383595.0],
    ]
    b = np.array([
        104257.0/1920240.0, 0.0, 0.0, 0.0, 0.0,
        3399327.0/763840.0, 66578432.0/35198415.0, -1674902723.0/288716400.0,
        54980371265625.0/176692375811392.0, -734375.0/4826304.0,
        171414593.0/851261400.0, 137909.0/3084480.0, 0.0,
    ])
    a = np.zeros((13, 13))
    for k, row in enumerate(rows):
        a[k, :len(row)] = row
    a[12, :12] = b[:12]

    error = np.array([
        116092271.0/8848465920.0, 0.0, 0.0, 0.0, 0.0,
        -1871647.0/1527680.0, -69799717.0/140793660.0,
        1230164450203.0/739113984000.0, -1980813971228885.0/5654156025964544.0,
        464500805.0/1389975552.0, 1606764981773.0/19613062656000.0,
        -137909.0/6168960.0, 0.0,
    ])

    # stages 14, 15 and 16, only evaluated for dense output
    dense_c = np.array([1.0/10.0, 1.0/5.0, 7.0/9.0])
    dense_a = np.zeros((3, 16))
    dense_a[0, [0, 5, 6, 7, 8, 9, 10, 11, 12]] = [
        13481885573.0/240030000000.0, 0.0, 139418837528.0/549975234375.0,
        -11108320068443.0/45111937500000.0, -1769651421925959.0/14249385146080000.0,
        57799439.0/377055000.0, 793322643029.0/96734250000000.0,
        1458939311.0/192780000000.0, -4149.0/500000.0,
    ]
    dense_a[1, [0, 5, 6, 7, 8, 9, 10, 11, 12, 13]] = [
        1595561272731.0/50120273500000.0, 975183916491.0/34457688031250.0,
        38492013932672.0/718912673015625.0, -1114881286517557.0/20298710767500000.0,
        0.0, 0.0, -2538710946863.0/23431227861250000.0,
        8824659001.0/23066716781250.0, -11518334563.0/33831184612500.0,
        1912306948.0/13532473845.0,
    ]
    dense_a[2, [0, 5, 6, 7, 8, 9, 10, 11, 12, 13, 14]] = [
        -13613986967.0/31741908048.0, -4755612631.0/1012344804.0,
        42939257944576.0/5588559685701.0, 77881972900277.0/19140370552944.0,
        22719829234375.0/63689648654052.0, 0.0, 0.0, 0.0,
        -1199007803.0/857031517296.0, 157882067000.0/53564469831.0,
        -290468882375.0/31741908048.0,
    ]

    # y(θ) = y0 + θh Σ g_k(θ) v_k with g = 1, η, θη, θη², θ²η², θ²η³, θ³η³ and
    # η = 1 - θ; every v_k is a combination of the 16 stage derivatives
    d = np.array([
        [-17751989329.0/2106076560.0, 4272954039.0/7539864640.0,
         -118476319744.0/38604839385.0, 755123450731.0/316657731600.0,
         3692384461234828125.0/1744130441634250432.0, -4612609375.0/5293382976.0,
         2091772278379.0/933644586600.0, 2136624137.0/3382989120.0,
         -126493.0/1421424.0, 98350000.0/5419179.0,
         -18878125.0/2053168.0, -1944542619.0/438351368.0],
        [32941697297.0/3159114840.0, 456696183123.0/1884966160.0,
         19132610714624.0/115814518155.0, -177904688592943.0/474986597400.0,
         -4821139941836765625.0/218016305204281304.0, 30702015625.0/3970037232.0,
         -85916079474274.0/2800933759800.0, -5919468007.0/634310460.0,
         2479159.0/157936.0, -18750000.0/602131.0,
         -19203125.0/2053168.0, 15700361463.0/438351368.0],
        [12627015655.0/631822968.0, -72955222965.0/188496616.0,
         -13145744952320.0/69488710893.0, 30084216194513.0/56998391688.0,
         -296858761006640625.0/25648977082856624.0, 569140625.0/82709109.0,
         -18684190637.0/18672891732.0, 69644045.0/89549712.0,
         -11847025.0/4264272.0, -978650000.0/16257537.0,
         519371875.0/6159504.0, 5256837225.0/438351368.0],
        [-450944925.0/17550638.0, -14532122925.0/94248308.0,
         -595876966400.0/2573655959.0, 188748653015.0/527762886.0,
         2545485458115234375.0/27252038150535163.0, -1376953125.0/36759604.0,
         53995596795.0/518691437.0, 210311225.0/7047894.0,
         -1718875.0/39484.0, 58000000.0/602131.0,
         -1546875.0/39484.0, -1262172375.0/8429834.0],
    ])
    v = np.zeros((7, 16))
    v[0, :13] = b
    v[1] = -v[0]
    v[1, 0] += 1.0
    v[2] = v[0] - v[1]
    v[2, 12] -= 1.0
    v[3:, [0, 5, 6, 7, 8, 9, 10, 11, 12, 13, 14, 15]] = d

    eta = np.array([1.0, -1.0])
    g = np.zeros((7, 8))  # power series of θ g_k(θ), constant term first
    for k, (theta_power, eta_power) in enumerate(
        [(0, 0), (0, 1), (1, 1), (1, 2), (2, 2), (2, 3), (3, 3)]
    ):
        series = P.polymul(P.polypow([0.0, 1.0], theta_power + 1), P.polypow(eta, eta_power))
        g[k, :series.shape[0]] = series
    dense = v.T @ g[:, 1:]

    return ButcherTableau(
        c=c, a=a, b=b, order=8, dense=dense, error=error, fsal=True,
        dense_c=dense_c, dense_a=dense_a,
    )
